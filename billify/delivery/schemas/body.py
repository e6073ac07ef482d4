from datetime import date
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

from billify.delivery.schemas.layout import TemplateLayout


# --- templates ---
class TemplateCreate(BaseModel):
    name: str
    description: Optional[str] = None
    layout: Optional[TemplateLayout] = None  # blank layout when omitted
    is_default: bool = False
    thumbnail: Optional[str] = None


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    layout: Optional[TemplateLayout] = None
    is_default: Optional[bool] = None
    thumbnail: Optional[str] = None


class TemplateDuplicate(BaseModel):
    name: str


# --- editor sessions ---
class SessionCreate(BaseModel):
    name: Optional[str] = None
    description: str = ""
    template_id: Optional[str] = None  # open a saved template instead of a blank one


class ComponentDrop(BaseModel):
    type: str
    x: float = 0
    y: float = 0


class ComponentPatch(BaseModel):
    label: Optional[str] = None
    content: Optional[str] = None
    style: Optional[Dict[str, str]] = None
    position: Optional[Dict[str, float]] = None
    size: Optional[Dict[str, float]] = None
    locked: Optional[bool] = None
    visible: Optional[bool] = None


class Selection(BaseModel):
    component_id: Optional[str] = None


class PointerEvent(BaseModel):
    action: Literal["down", "move", "up", "leave"]
    x: float = 0
    y: float = 0


class ViewUpdate(BaseModel):
    zoom: Optional[float] = Field(None, gt=0)
    grid_snap: Optional[bool] = None
    show_grid: Optional[bool] = None


# --- records ---
class CompanyBody(BaseModel):
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
    logo_url: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None


class LogoUpload(BaseModel):
    data_url: str  # data:image/<format>;base64,<payload>


class ClientBody(BaseModel):
    name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = None
    gstin: Optional[str] = None


class ProductBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    hsn_code: Optional[str] = None
    unit_price: Optional[float] = None
    tax_rate: Optional[float] = None
    unit: Optional[str] = None


class InvoiceItemBody(BaseModel):
    product_id: Optional[str] = None
    item_name: str
    description: Optional[str] = None
    hsn_code: Optional[str] = None
    quantity: float = 1
    unit_price: float = 0
    tax_rate: float = 18
    line_total: Optional[float] = None


class InvoiceBody(BaseModel):
    client_id: Optional[str] = None
    company_id: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Optional[float] = None
    tax_amount: Optional[float] = None
    total_amount: Optional[float] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[InvoiceItemBody]] = None


# --- generation ---
class GenerationRequest(BaseModel):
    template_id: Optional[str] = None
    upload: Optional[bool] = None
    deliver: Optional[bool] = None
    send_email: Optional[bool] = None
    download: bool = False  # respond with the PDF instead of JSON


def record_values(body: BaseModel) -> Dict[str, Any]:
    """Fields the client actually sent, as plain Python values."""
    return body.model_dump(exclude_unset=True)
