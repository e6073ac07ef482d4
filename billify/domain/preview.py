# billify/domain/preview.py
import re
from typing import Dict, List, Optional

from billify.delivery.schemas.invoice import InvoiceData
from billify.delivery.schemas.layout import PlacedComponent, TemplateLayout
from billify.domain.invoice_math import (
    STANDARD_GST_RATE, amount_in_words, calculate_gst, format_indian_currency, line_total, taxable_value,
)
from billify.domain.pdf_templates import jinja_env

PREVIEW_SCALE = 0.8
_PRE_LINE_TYPES = {"tax-breakdown", "bank-details", "signature"}
_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")

SAMPLE_DATA = {
    "company_name": "Acme Corporation",
    "company_address": "123 Business St, Mumbai, Maharashtra - 400001",
    "company_contact": "Tel: +91 98765 43210 | Email: info@acme.com",
    "company_gstin": "GSTIN: 27AAAAA0000A1Z5 | PAN: AAAAA0000A | CIN: L12345MH2010PLC123456",
    "client_name": "ABC Enterprises",
    "client_address": "456 Client Ave, Delhi, Delhi - 110001",
    "client_gstin": "GSTIN: 07BBBBB0000B1Z5",
    "invoice_number": "INV-2024-001",
    "invoice_date": "02/10/2024",
    "due_date": "01/11/2024",
    "subtotal": "₹ 10,000.00",
    "cgst": "₹ 900.00",
    "sgst": "₹ 900.00",
    "igst": "₹ 0.00",
    "total": "₹ 11,800.00",
    "amount_in_words": "Rupees Eleven Thousand Eight Hundred Only",
    "bank_details": "Bank: State Bank of India\nAccount: 1234567890\nIFSC: SBIN0001234",
    "signer": "Acme Corporation",
}

SAMPLE_ROWS = [
    {"name": "Consulting Services", "quantity": "1", "rate": "₹ 10,000.00", "amount": "₹ 10,000.00"},
]


def _content_map(values: Dict[str, str]) -> Dict[str, str]:
    return {
        "company-name": values["company_name"],
        "company-address": values["company_address"],
        "company-contact": values["company_contact"],
        "company-gstin": values["company_gstin"],
        "client-name": values["client_name"],
        "client-address": values["client_address"],
        "client-gstin": values["client_gstin"],
        "invoice-number": f"Invoice No: {values['invoice_number']}",
        "invoice-date": f"Date: {values['invoice_date']}",
        "due-date": f"Due Date: {values['due_date']}",
        "subtotal": f"Subtotal: {values['subtotal']}",
        "tax-breakdown": f"CGST @9%: {values['cgst']}\nSGST @9%: {values['sgst']}\nIGST @18%: {values['igst']}",
        "total-amount": f"Total: {values['total']}",
        "amount-in-words": values["amount_in_words"],
        "bank-details": values["bank_details"],
        "signature": f"For {values['signer']}\n\n\n\nAuthorized Signatory",
        "terms-conditions": "Terms & Conditions: Payment due within 30 days. Late payments subject to 2% monthly interest.",
        "items-table": "Items table will appear here",
        "company-logo": "[Logo]",
        "heading": "GST INVOICE",
        "text": "Sample text",
        "divider": "",
        "spacer": "",
    }


def _rupees(amount) -> str:
    return f"₹ {format_indian_currency(amount)}"


def _joined(*parts: Optional[str], sep: str = ", ") -> str:
    return sep.join(p for p in parts if p)


def invoice_values(data: InvoiceData) -> Dict[str, str]:
    """Preview field values taken from a real invoice instead of the sample."""
    invoice, client, company = data.invoice, data.client, data.company
    gst = calculate_gst(taxable_value(data.items), STANDARD_GST_RATE, company.state or "", client.state or "")
    company_ids = [f"GSTIN: {company.gstin}" if company.gstin else "",
                   f"PAN: {company.pan}" if company.pan else "",
                   f"CIN: {company.cin}" if company.cin else ""]
    return {
        "company_name": company.company_name or "",
        "company_address": _joined(_joined(company.address, company.city, company.state), company.pin_code, sep=" - "),
        "company_contact": _joined(f"Tel: {company.phone}" if company.phone else "",
                                   f"Email: {company.email}" if company.email else "", sep=" | "),
        "company_gstin": _joined(*company_ids, sep=" | "),
        "client_name": client.name or client.company_name or "",
        "client_address": _joined(_joined(client.address, client.city, client.state), client.pin_code, sep=" - "),
        "client_gstin": f"GSTIN: {client.gstin}" if client.gstin else "",
        "invoice_number": invoice.invoice_number,
        "invoice_date": invoice.invoice_date.strftime("%d/%m/%Y") if invoice.invoice_date else "N/A",
        "due_date": invoice.due_date.strftime("%d/%m/%Y") if invoice.due_date else "N/A",
        "subtotal": _rupees(invoice.subtotal),
        "cgst": _rupees(gst.cgst_amount),
        "sgst": _rupees(gst.sgst_amount),
        "igst": _rupees(gst.igst_amount),
        "total": _rupees(invoice.total_amount),
        "amount_in_words": f"Rupees {amount_in_words(invoice.total_amount or 0)} Only",
        "bank_details": _joined(f"Bank: {company.bank_name}" if company.bank_name else "",
                                f"Account: {company.account_number}" if company.account_number else "",
                                f"IFSC: {company.ifsc_code}" if company.ifsc_code else "", sep="\n"),
        "signer": company.company_name or "",
    }


def invoice_rows(data: InvoiceData) -> List[Dict[str, str]]:
    return [
        {
            "name": item.item_name,
            "quantity": f"{item.quantity:g}",
            "rate": _rupees(item.unit_price),
            "amount": _rupees(line_total(item)),
        }
        for item in data.items
    ]


def style_to_css(style: Dict[str, str]) -> str:
    return "; ".join(f"{_CAMEL.sub('-', key).lower()}: {value}" for key, value in style.items())


def _block(component: PlacedComponent, contents: Dict[str, str], rows, logo_src: Optional[str]) -> dict:
    box = {
        "left": f"{component.position.x:g}px",
        "top": f"{component.position.y:g}px",
        "width": f"{component.size.width:g}px",
        "height": f"{component.size.height:g}px",
    }
    css = "; ".join(f"{k}: {v}" for k, v in box.items())
    if component.style:
        css = f"{css}; {style_to_css(component.style)}"

    if component.type == "divider":
        style = component.style
        border = f"{style.get('borderWidth', '1px')} {style.get('borderStyle', 'solid')} {style.get('borderColor', '#000000')}"
        return {"kind": "divider", "css": f"{css}; border-top: {border}"}
    if component.type == "spacer":
        return {"kind": "spacer", "css": css}
    if component.type == "items-table":
        return {"kind": "items", "css": css, "rows": rows}
    if component.type == "company-logo":
        return {"kind": "logo", "css": css, "logo_src": logo_src}

    text = component.content or contents.get(component.type, component.type)
    return {"kind": "text", "css": css, "text": text, "pre_line": component.type in _PRE_LINE_TYPES}


def render_preview(
    layout: TemplateLayout,
    data: Optional[InvoiceData] = None,
    logo_src: Optional[str] = None,
    scale: float = PREVIEW_SCALE,
) -> str:
    """Standalone HTML page showing ``layout`` filled with sample or real invoice data.

    Invisible components are skipped; paint order follows the component list.
    """
    contents = _content_map(invoice_values(data) if data else SAMPLE_DATA)
    rows = invoice_rows(data) if data else SAMPLE_ROWS
    blocks = [_block(c, contents, rows, logo_src) for c in layout.components if c.visible]
    width, height = layout.page_dimensions
    styles = layout.global_styles

    return jinja_env.get_template("preview.html").render(
        layout=layout,
        blocks=blocks,
        width=width,
        height=height,
        scale=scale,
        empty=not layout.components,
        font_family=(styles and styles.font_family) or "Roboto, sans-serif",
        text_color=(styles and styles.primary_color) or "#000000",
    )
