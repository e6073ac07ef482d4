import pytest

from billify.delivery.schemas.layout import Position
from billify.domain.errors import InvalidInputError
from billify.domain.template_editor import TemplateEditor


@pytest.fixture
def editor():
    editor = TemplateEditor()
    editor.new_template("Properties")
    return editor


def _select(editor, component_type):
    component = editor.add_component_at(component_type, Position(x=100, y=100))
    editor.select(component.id)
    return editor.properties


class TestPropertyEditor:
    def test_nothing_selected(self, editor):
        assert editor.properties.editable_fields() is None
        with pytest.raises(InvalidInputError):
            editor.properties.set_content("hi")

    def test_content_only_for_text_types(self, editor):
        properties = _select(editor, "company-name")
        assert properties.editable_fields()["content"] is False
        with pytest.raises(InvalidInputError):
            properties.set_content("Acme")

        properties = _select(editor, "heading")
        assert properties.set_content("TAX INVOICE").content == "TAX INVOICE"

    def test_font_size(self, editor):
        properties = _select(editor, "heading")
        assert properties.font_size() == 18
        properties.set_font_size(22)
        assert properties.font_size() == 22
        assert editor.selected_component.style["fontSize"] == "22px"

    def test_font_size_default(self, editor):
        properties = _select(editor, "company-logo")
        assert properties.font_size() == 12

    def test_size_is_clamped(self, editor):
        properties = _select(editor, "text")
        component = properties.set_size(width=10, height=5)
        assert (component.size.width, component.size.height) == (50, 30)

    def test_position_is_clamped(self, editor):
        properties = _select(editor, "text")
        component = properties.set_position(x=-20, y=35)
        assert component.position == Position(x=0, y=35)

    def test_unknown_style_key(self, editor):
        properties = _select(editor, "text")
        with pytest.raises(InvalidInputError):
            properties.set_style(zIndex="2")

    def test_toggles_and_delete(self, editor):
        properties = _select(editor, "text")
        assert properties.toggle_lock().locked is True
        assert properties.toggle_visibility().visible is False
        properties.delete()
        assert editor.layout.components == []
        assert editor.selected_id is None

    def test_apply_is_one_history_entry(self, editor):
        properties = _select(editor, "text")
        before = len(editor.history)
        component = properties.apply({
            "content": "Thanks!",
            "style": {"color": "#333333"},
            "position": {"x": 40},
            "size": {"width": 20},
            "label": "Footer note",
        })
        assert len(editor.history) == before + 1
        assert component.content == "Thanks!"
        assert component.position.x == 40
        assert component.size.width == 50
        assert component.label == "Footer note"

    def test_apply_checks_every_gate_first(self, editor):
        properties = _select(editor, "company-name")
        before = len(editor.history)
        with pytest.raises(InvalidInputError):
            properties.apply({"position": {"x": 5}, "content": "nope"})
        assert len(editor.history) == before
