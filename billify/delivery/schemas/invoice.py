from datetime import date
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return None if value is None else str(value)


class CompanyProfile(_Record):
    company_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    gstin: Optional[str] = None
    pan: Optional[str] = None
    cin: Optional[str] = None
    logo_url: Optional[str] = None  # URL, base64 data URL or object-storage URL
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None


class Client(_Record):
    name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = None
    gstin: Optional[str] = None


class InvoiceItem(_Record):
    item_name: str = ""
    description: Optional[str] = None
    hsn_code: Optional[str] = None
    quantity: float = 1
    unit_price: float = 0
    tax_rate: float = 18
    line_total: Optional[float] = None


class Invoice(_Record):
    invoice_number: str
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Optional[float] = None
    tax_amount: Optional[float] = None
    total_amount: Optional[float] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class InvoiceData(BaseModel):
    invoice: Invoice
    items: List[InvoiceItem] = Field(default_factory=list)
    client: Client
    company: CompanyProfile
