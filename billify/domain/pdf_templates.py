# billify/domain/pdf_templates.py
import logging
import os
from datetime import date
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from pydantic import BaseModel

from billify.delivery.schemas.invoice import InvoiceData
from billify.domain.invoice_math import (
    STANDARD_GST_RATE, amount_in_words, calculate_gst, format_currency, line_total, taxable_value,
)
from billify.infrastructure.images.logo import LogoResolver, is_placeholder

logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "templates")
DEFAULT_TEMPLATE_ID = "default"


class TemplateColors(BaseModel):
    primary: str
    secondary: str
    accent: str


class TemplateConfig(BaseModel):
    id: str
    name: str
    description: str
    preview: str
    colors: TemplateColors


INVOICE_TEMPLATES: List[TemplateConfig] = [
    TemplateConfig(
        id="default",
        name="Default Template",
        description="Simple and clean default invoice template",
        preview="/templates/default-preview.png",
        colors=TemplateColors(primary="#000000", secondary="#ffffff", accent="#f0f0f0"),
    ),
    TemplateConfig(
        id="Extrape",
        name="Extrape Format",
        description="Professional Extrape design",
        preview="/templates/Extrape-preview.png",
        colors=TemplateColors(primary="#1f2937", secondary="#f9fafb", accent="#6b7280"),
    ),
]


def _invoice_date(value: Optional[date]) -> str:
    """DD/MM/YYYY, or N/A."""
    return value.strftime("%d/%m/%Y") if value else "N/A"


def _rate(value) -> str:
    return f"{Decimal(str(value)).normalize():f}"


def _quantity(value) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)
jinja_env.filters.update(
    money=format_currency,
    invoice_date=_invoice_date,
    rate=_rate,
    quantity=_quantity,
    line_total=line_total,
)


def _join_address(*parts: Optional[str], pin_code: Optional[str] = None) -> str:
    address = ", ".join(p for p in parts if p)
    return f"{address} - {pin_code}" if pin_code else address


async def _invoice_context(data: InvoiceData, logo_resolver: LogoResolver) -> dict:
    invoice, items, client, company = data.invoice, data.items, data.client, data.company

    logo_url = await logo_resolver.resolve(company.logo_url)
    # Nominal rate for the summary; per-item rates can differ
    gst = calculate_gst(taxable_value(items), STANDARD_GST_RATE, company.state or "", client.state or "")
    total_amount = invoice.total_amount or 0

    return {
        "invoice": invoice,
        "items": items,
        "client": client,
        "company": company,
        "logo_url": logo_url,
        "show_logo": not is_placeholder(logo_url),
        "company_address": _join_address(company.address, company.city, company.state, pin_code=company.pin_code),
        "client_address": _join_address(client.address, client.city, client.state, pin_code=client.pin_code),
        "gst": gst,
        "total_amount": total_amount,
        "amount_words": amount_in_words(total_amount),
        "service_description": items[0].item_name if items else "Services rendered",
    }


async def generate_default_template(data: InvoiceData, logo_resolver: LogoResolver) -> str:
    context = await _invoice_context(data, logo_resolver)
    return jinja_env.get_template("default.html").render(**context)


async def generate_extrape_template(data: InvoiceData, logo_resolver: LogoResolver) -> str:
    context = await _invoice_context(data, logo_resolver)
    return jinja_env.get_template("extrape.html").render(**context)


TemplateGenerator = Callable[[InvoiceData, LogoResolver], Awaitable[str]]

TEMPLATE_GENERATORS: Dict[str, TemplateGenerator] = {
    "default": generate_default_template,
    "Extrape": generate_extrape_template,
}


def get_generator(template_id: Optional[str]) -> TemplateGenerator:
    generator = TEMPLATE_GENERATORS.get(template_id or DEFAULT_TEMPLATE_ID)
    if generator is None:
        logger.warning(f"Unknown invoice template '{template_id}', falling back to '{DEFAULT_TEMPLATE_ID}'")
        return TEMPLATE_GENERATORS[DEFAULT_TEMPLATE_ID]
    return generator


async def render_invoice_html(template_id: Optional[str], data: InvoiceData, logo_resolver: LogoResolver) -> str:
    return await get_generator(template_id)(data, logo_resolver)
