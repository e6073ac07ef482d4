# billify/domain/component_registry.py
import random
import string
import time
from typing import Dict, List, Optional

from billify.delivery.schemas.layout import (
    ComponentDefinition,
    GlobalStyles,
    Margins,
    PlacedComponent,
    Position,
    TemplateLayout,
)
from billify.domain.errors import InvalidInputError, NotFoundError

CONTENT_PLACEHOLDER = "Edit this text"

_ALL = {"style": True, "size": True, "position": True}
_WITH_CONTENT = {"content": True, **_ALL}


def _definition(type_, label, icon, category, description, style, width, height, configurable=_ALL):
    return ComponentDefinition(
        type=type_,
        label=label,
        icon=icon,
        category=category,
        description=description,
        default_style=style,
        default_size={"width": width, "height": height},
        configurable=configurable,
    )


# --- Component library, in palette order ---
COMPONENT_LIBRARY: List[ComponentDefinition] = [
    # Header
    _definition("company-logo", "Company Logo", "Image", "header", "Your company logo",
                {"width": "100px", "height": "100px"}, 100, 100),
    _definition("company-name", "Company Name", "Building2", "header", "Company name from profile",
                {"fontSize": "24px", "fontWeight": "bold", "textAlign": "center"}, 300, 40),
    _definition("company-address", "Company Address", "MapPin", "header", "Company address from profile",
                {"fontSize": "12px", "textAlign": "center"}, 300, 60),
    _definition("company-contact", "Company Contact", "Phone", "header", "Phone and email",
                {"fontSize": "12px", "textAlign": "center"}, 300, 40),
    _definition("company-gstin", "Company GSTIN", "FileText", "header", "GSTIN, PAN, CIN",
                {"fontSize": "11px", "textAlign": "left"}, 250, 30),
    # Content
    _definition("heading", "Heading", "Heading", "content", "Custom heading text",
                {"fontSize": "18px", "fontWeight": "bold", "textAlign": "center"}, 200, 30, _WITH_CONTENT),
    _definition("text", "Text", "Type", "content", "Custom text field",
                {"fontSize": "12px", "textAlign": "left"}, 200, 30, _WITH_CONTENT),
    _definition("invoice-number", "Invoice Number", "Hash", "content", "Invoice number field",
                {"fontSize": "12px", "fontWeight": "bold"}, 200, 25),
    _definition("invoice-date", "Invoice Date", "Calendar", "content", "Invoice date field",
                {"fontSize": "12px"}, 200, 25),
    _definition("due-date", "Due Date", "CalendarClock", "content", "Payment due date",
                {"fontSize": "12px"}, 200, 25),
    _definition("client-name", "Client Name", "User", "content", "Client name and address",
                {"fontSize": "12px", "fontWeight": "bold"}, 250, 30),
    _definition("client-address", "Client Address", "MapPin", "content", "Client full address",
                {"fontSize": "11px"}, 250, 60),
    _definition("client-gstin", "Client GSTIN", "FileText", "content", "Client GSTIN",
                {"fontSize": "11px"}, 200, 25),
    # Table
    _definition("items-table", "Items Table", "Table", "table", "Invoice items table",
                {"fontSize": "11px", "borderWidth": "1px", "borderColor": "#000000", "borderStyle": "solid"},
                700, 200),
    _definition("subtotal", "Subtotal", "Calculator", "table", "Subtotal amount",
                {"fontSize": "12px", "textAlign": "right"}, 200, 25),
    _definition("tax-breakdown", "Tax Breakdown", "Percent", "table", "CGST, SGST, IGST breakdown",
                {"fontSize": "11px", "textAlign": "right"}, 250, 80),
    _definition("total-amount", "Total Amount", "DollarSign", "table", "Final total amount",
                {"fontSize": "14px", "fontWeight": "bold", "textAlign": "right"}, 200, 30),
    _definition("amount-in-words", "Amount in Words", "Type", "table", "Total amount in words",
                {"fontSize": "11px", "fontStyle": "italic"}, 400, 25),
    # Footer
    _definition("bank-details", "Bank Details", "Building", "footer", "Bank account information",
                {"fontSize": "10px", "borderWidth": "1px", "borderColor": "#cccccc",
                 "borderStyle": "solid", "padding": "10px"}, 350, 100),
    _definition("signature", "Signature", "PenTool", "footer", "Authorized signatory section",
                {"fontSize": "11px", "textAlign": "right"}, 200, 100),
    _definition("terms-conditions", "Terms & Conditions", "FileText", "footer", "Terms and conditions text",
                {"fontSize": "9px", "color": "#666666"}, 700, 60, _WITH_CONTENT),
    # Layout
    _definition("divider", "Divider", "Minus", "layout", "Horizontal line separator",
                {"borderWidth": "1px", "borderColor": "#000000", "borderStyle": "solid", "width": "100%"},
                700, 2),
    _definition("spacer", "Spacer", "Space", "layout", "Empty space for layout",
                {"backgroundColor": "transparent"}, 100, 20, {"size": True, "position": True}),
]

_BY_TYPE: Dict[str, ComponentDefinition] = {d.type: d for d in COMPONENT_LIBRARY}


def get_definition(component_type: str) -> ComponentDefinition:
    definition = _BY_TYPE.get(component_type)
    if definition is None:
        raise NotFoundError(f"Component type {component_type} not found")
    return definition


def find_definition(component_type: str) -> Optional[ComponentDefinition]:
    return _BY_TYPE.get(component_type)


def by_category() -> Dict[str, List[ComponentDefinition]]:
    grouped: Dict[str, List[ComponentDefinition]] = {}
    for definition in COMPONENT_LIBRARY:
        grouped.setdefault(definition.category, []).append(definition)
    return grouped


def _random_suffix(length: int = 9) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choices(alphabet, k=length))


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def create_component(component_type: str, position) -> PlacedComponent:
    definition = get_definition(component_type)
    if not isinstance(position, Position):
        position = Position.model_validate(position)

    return PlacedComponent(
        id=f"{component_type}-{_timestamp_ms()}-{_random_suffix()}",
        type=component_type,
        label=definition.label,
        content=CONTENT_PLACEHOLDER if definition.configurable.content else None,
        style=dict(definition.default_style),
        position=position.model_copy(),
        size=definition.default_size.model_copy(),
        locked=False,
        visible=True,
    )


def create_blank_template(name: str, description: str = "") -> TemplateLayout:
    if not name or not name.strip():
        raise InvalidInputError("Template name required")
    return TemplateLayout(
        id=f"template-{_timestamp_ms()}-{_random_suffix(5)}",
        name=name.strip(),
        description=description,
        page_size="A4",
        orientation="portrait",
        margins=Margins(top=20, right=20, bottom=20, left=20),
        components=[],
        global_styles=GlobalStyles(
            font_family="Roboto, sans-serif",
            primary_color="#000000",
            secondary_color="#666666",
            accent_color="#0066cc",
        ),
    )
