"""Shared fixtures: in-memory database, invoice data and fakes for remote services."""
from datetime import date
from typing import List

import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from billify.delivery.schemas.invoice import Client, CompanyProfile, Invoice, InvoiceData, InvoiceItem
from billify.domain.errors import RemoteServiceError
from billify.infrastructure.database.models import Base


# ─────────────────────────────────────────────────────────
# Storage
# ─────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


# ─────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────

class FakeStorage:
    def __init__(self, configured: bool = True, fail: bool = False):
        self.configured = configured
        self.fail = fail
        self.uploads: List[tuple] = []

    def validate_config(self) -> bool:
        return self.configured

    def upload_pdf(self, pdf_bytes: bytes, file_name: str) -> str:
        if self.fail:
            raise RuntimeError("upload rejected")
        self.uploads.append((file_name, pdf_bytes))
        return f"https://res.cloudinary.com/demo/raw/upload/v1/pdfs/{file_name}.pdf"

    def upload_logo(self, image_bytes: bytes, original_name: str, content_type: str = "image/png") -> str:
        self.uploads.append((original_name, image_bytes))
        return f"https://res.cloudinary.com/demo/image/upload/v1/logos/{original_name}"

    def signed_url(self, url: str, expires_in: int = 3600) -> str:
        return f"{url}?signed=1"


class FakeNotifier:
    def __init__(self, configured: bool = True, fail: bool = False):
        self.configured = configured
        self.fail = fail
        self.sent = []

    def validate_config(self) -> bool:
        return self.configured

    async def send_invoice_email(self, email):
        if self.fail:
            raise RemoteServiceError("Email API error: 500")
        self.sent.append(email)
        return {"ok": True}


class FakeRasterizer:
    """Returns a white bitmap of a fixed size instead of launching a browser."""

    def __init__(self, width: int = 794, height: int = 1123):
        self.width = width
        self.height = height
        self.html: List[str] = []

    async def rasterize(self, html: str) -> Image.Image:
        self.html.append(html)
        return Image.new("RGB", (self.width, self.height), "white")


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def rasterizer():
    return FakeRasterizer()


# ─────────────────────────────────────────────────────────
# Invoice data
# ─────────────────────────────────────────────────────────

@pytest.fixture
def invoice_data() -> InvoiceData:
    return InvoiceData(
        invoice=Invoice(
            id="inv-1",
            invoice_number="021024INV0001",
            invoice_date=date(2024, 10, 2),
            subtotal=10000,
            tax_amount=1800,
            total_amount=11800,
        ),
        items=[InvoiceItem(item_name="Consulting Services", hsn_code="998311", quantity=1,
                           unit_price=10000, line_total=10000)],
        client=Client(name="ABC Enterprises", email="billing@abc.example", address="456 Client Ave",
                      city="Delhi", state="Delhi", pin_code="110001", gstin="07BBBBB0000B1Z5"),
        company=CompanyProfile(company_name="Acme Corporation", address="123 Business St", city="Mumbai",
                               state="Maharashtra", pin_code="400001", gstin="27AAAAA0000A1Z5",
                               bank_name="State Bank of India", account_number="1234567890",
                               ifsc_code="SBIN0001234"),
    )
