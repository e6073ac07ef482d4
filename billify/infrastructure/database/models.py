import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, JSON, String, Text, Uuid
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class CustomTemplate(TimestampMixin, Base):
    __tablename__ = "custom_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    layout = Column(JSON, nullable=False)  # TemplateLayout blob, camelCase keys
    is_default = Column(Boolean, default=False, nullable=False)
    thumbnail = Column(Text)  # base64 or URL


class AppSettings(TimestampMixin, Base):
    __tablename__ = "app_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String, unique=True, index=True)
    enable_s3_upload = Column(Boolean, default=True, nullable=False)
    enable_email_notifications = Column(Boolean, default=True, nullable=False)
    enable_default_template_button = Column(Boolean, default=False, nullable=False)
    theme = Column(String, default="light", nullable=False)
    default_template_id = Column(String, default="default", nullable=False)


class CompanyProfile(TimestampMixin, Base):
    __tablename__ = "company_profile"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String, nullable=False, index=True)
    company_name = Column(String, nullable=False)
    address = Column(Text)
    city = Column(String)
    state = Column(String)
    pin_code = Column(String)
    phone = Column(String)
    email = Column(String)
    gstin = Column(String)
    pan = Column(String)
    cin = Column(String)
    logo_url = Column(Text)
    bank_name = Column(String)
    account_number = Column(String)
    ifsc_code = Column(String)


class Client(TimestampMixin, Base):
    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    company_name = Column(String)
    email = Column(String)
    phone = Column(String)
    address = Column(Text)
    city = Column(String)
    state = Column(String)
    pin_code = Column(String)
    gstin = Column(String)


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    hsn_code = Column(String)
    unit_price = Column(Float, default=0, nullable=False)
    tax_rate = Column(Float, default=18, nullable=False)
    unit = Column(String)


class Invoice(TimestampMixin, Base):
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String, nullable=False, index=True)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=False)
    company_id = Column(Uuid, ForeignKey("company_profile.id"))
    invoice_number = Column(String, nullable=False)
    invoice_date = Column(Date)
    due_date = Column(Date)
    subtotal = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    total_amount = Column(Float, default=0)
    status = Column(String, default="draft")
    notes = Column(Text)

    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.created_at",
    )


class InvoiceItem(TimestampMixin, Base):
    __tablename__ = "invoice_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id"))
    item_name = Column(String, nullable=False)
    description = Column(Text)
    hsn_code = Column(String)
    quantity = Column(Float, default=1, nullable=False)
    unit_price = Column(Float, default=0, nullable=False)
    tax_rate = Column(Float, default=18, nullable=False)
    line_total = Column(Float)

    invoice = relationship("Invoice", back_populates="items")
