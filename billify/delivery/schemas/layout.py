from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Literal, Optional

# Page pixel dimensions at 96 DPI, keyed by orientation
PAGE_DIMENSIONS = {
    "portrait": (794, 1123),
    "landscape": (1123, 794),
}

MIN_COMPONENT_WIDTH = 50
MIN_COMPONENT_HEIGHT = 30

STYLE_KEYS = frozenset({
    "fontSize", "fontWeight", "fontStyle", "fontFamily",
    "color", "backgroundColor", "textAlign",
    "padding", "margin",
    "borderWidth", "borderColor", "borderStyle",
    "width", "height",
    "display", "flexDirection", "justifyContent", "alignItems", "gap",
})

ComponentCategory = Literal["header", "content", "table", "footer", "layout"]


class Position(BaseModel):
    x: float = Field(0, ge=0)
    y: float = Field(0, ge=0)


class Size(BaseModel):
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)


class Margins(BaseModel):
    top: float = 20
    right: float = 20
    bottom: float = 20
    left: float = 20


class Configurable(BaseModel):
    content: bool = False
    style: bool = False
    size: bool = False
    position: bool = False


def _check_style_keys(style: Dict[str, str]) -> Dict[str, str]:
    unknown = set(style) - STYLE_KEYS
    if unknown:
        raise ValueError(f"unknown style attributes: {', '.join(sorted(unknown))}")
    return style


class ComponentDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str
    label: str
    icon: str = ""
    category: ComponentCategory
    description: str = ""
    default_style: Dict[str, str] = Field(default_factory=dict, alias="defaultStyle")
    default_size: Size = Field(..., alias="defaultSize")
    configurable: Configurable = Field(default_factory=Configurable)

    @field_validator("default_style")
    @classmethod
    def _known_style_keys(cls, style: Dict[str, str]) -> Dict[str, str]:
        return _check_style_keys(style)


class PlacedComponent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    label: str
    content: Optional[str] = None  # only for content-configurable types
    style: Dict[str, str] = Field(default_factory=dict)
    position: Position = Field(default_factory=Position)
    size: Size
    locked: bool = False
    visible: bool = True

    @field_validator("style")
    @classmethod
    def _known_style_keys(cls, style: Dict[str, str]) -> Dict[str, str]:
        return _check_style_keys(style)

    def contains(self, x: float, y: float) -> bool:
        return (self.position.x <= x <= self.position.x + self.size.width
                and self.position.y <= y <= self.position.y + self.size.height)


class GlobalStyles(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    font_family: Optional[str] = Field(None, alias="fontFamily")
    primary_color: Optional[str] = Field(None, alias="primaryColor")
    secondary_color: Optional[str] = Field(None, alias="secondaryColor")
    accent_color: Optional[str] = Field(None, alias="accentColor")


class TemplateLayout(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: Optional[str] = None
    page_size: Literal["A4", "Letter", "Legal"] = Field("A4", alias="pageSize")
    orientation: Literal["portrait", "landscape"] = "portrait"
    margins: Margins = Field(default_factory=Margins)
    # Insertion order is paint order
    components: List[PlacedComponent] = Field(default_factory=list)
    global_styles: Optional[GlobalStyles] = Field(None, alias="globalStyles")

    @field_validator("components")
    @classmethod
    def _unique_ids(cls, components: List[PlacedComponent]) -> List[PlacedComponent]:
        seen = set()
        for component in components:
            if component.id in seen:
                raise ValueError(f"duplicate component id '{component.id}'")
            seen.add(component.id)
        return components

    @property
    def page_dimensions(self):
        return PAGE_DIMENSIONS[self.orientation]

    def find(self, component_id: str) -> Optional[PlacedComponent]:
        for component in self.components:
            if component.id == component_id:
                return component
        return None

    def to_blob(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
