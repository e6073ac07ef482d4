import pytest

from billify.delivery.schemas.layout import Position
from billify.domain.component_registry import create_component
from billify.domain.errors import InvalidInputError, NotFoundError
from billify.domain.template_editor import TemplateEditor


@pytest.fixture
def editor():
    editor = TemplateEditor()
    editor.new_template("Editor")
    return editor


class TestMutations:
    def test_requires_open_template(self):
        with pytest.raises(InvalidInputError):
            TemplateEditor().add_component_at("text", Position())

    def test_add_records_history(self, editor):
        component = editor.add_component_at("text", Position(x=10, y=10))
        assert editor.layout.find(component.id) is not None
        assert len(editor.history) == 2

    def test_duplicate_id_rejected(self, editor):
        component = editor.add_component_at("text", Position())
        with pytest.raises(InvalidInputError):
            editor.add_component(component)

    def test_update_merges_nested_fields(self, editor):
        component = editor.add_component_at("heading", Position(x=10, y=20))
        updated = editor.update_component(component.id, {"style": {"color": "#ff0000"}, "position": {"x": 40}})
        assert updated.style["fontWeight"] == "bold"
        assert updated.style["color"] == "#ff0000"
        assert updated.position == Position(x=40, y=20)

    def test_update_unknown_component(self, editor):
        with pytest.raises(NotFoundError):
            editor.update_component("missing", {"label": "x"})

    def test_update_rejects_unknown_fields(self, editor):
        component = editor.add_component_at("text", Position())
        with pytest.raises(InvalidInputError):
            editor.update_component(component.id, {"id": "other"})

    def test_update_rejects_unknown_style(self, editor):
        component = editor.add_component_at("text", Position())
        with pytest.raises(InvalidInputError):
            editor.update_component(component.id, {"style": {"zIndex": "3"}})

    def test_delete_clears_selection(self, editor):
        component = editor.add_component_at("text", Position())
        editor.select(component.id)
        editor.delete_component(component.id)
        assert editor.selected_id is None
        assert editor.layout.components == []

    def test_delete_unknown(self, editor):
        with pytest.raises(NotFoundError):
            editor.delete_component("missing")


class TestUndoRedo:
    def test_round_trip(self, editor):
        component = editor.add_component_at("text", Position())
        editor.update_component(component.id, {"content": "Hello"})
        editor.undo()
        assert editor.layout.find(component.id).content == "Edit this text"
        editor.redo()
        assert editor.layout.find(component.id).content == "Hello"

    def test_canvas_gestures_restore_exact_layouts(self, editor):
        component = editor.canvas.drop("text", 100, 100)
        after_drop = editor.layout.model_copy(deep=True)

        editor.canvas.pointer_down(105, 105)
        editor.canvas.pointer_move(155, 135)
        editor.canvas.pointer_move(158, 143)
        editor.canvas.pointer_up()
        after_drag = editor.layout.model_copy(deep=True)
        assert after_drag != after_drop

        moved = editor.layout.find(component.id)
        right = moved.position.x + moved.size.width
        bottom = moved.position.y + moved.size.height
        editor.canvas.pointer_down(right - 2, bottom - 2)
        editor.canvas.pointer_move(right - 1000, bottom - 1000)
        editor.canvas.pointer_up()
        after_resize = editor.layout.model_copy(deep=True)
        resized = after_resize.find(component.id)
        assert (resized.size.width, resized.size.height) == (50, 30)

        editor.delete_component(component.id)
        after_delete = editor.layout.model_copy(deep=True)
        # blank, drop, drag, resize, delete
        assert len(editor.history) == 5

        editor.undo()
        assert editor.layout == after_resize
        editor.undo()
        assert editor.layout == after_drag
        editor.undo()
        assert editor.layout == after_drop

        editor.redo()
        editor.redo()
        editor.redo()
        assert editor.layout == after_delete
        editor.undo()
        assert editor.layout == after_resize

    def test_undo_drops_stale_selection(self, editor):
        component = editor.add_component_at("text", Position())
        editor.select(component.id)
        editor.undo()
        assert editor.selected_id is None

    def test_new_edit_discards_redo(self, editor):
        editor.add_component_at("text", Position())
        editor.undo()
        editor.add_component_at("heading", Position())
        assert editor.redo() is None
        assert [c.type for c in editor.layout.components] == ["heading"]

    def test_nothing_to_undo(self, editor):
        assert editor.undo() is None
        assert editor.layout.name == "Editor"


class TestReplaceLayout:
    def test_load_resets_selection(self, editor):
        component = editor.add_component_at("text", Position())
        editor.select(component.id)
        other = editor.layout.model_copy(deep=True)
        other.components = [create_component("heading", Position())]
        editor.replace_layout(other)
        assert editor.selected_id is None
        assert editor.layout.components[0].type == "heading"

    def test_snapshot(self, editor):
        snapshot = editor.snapshot()
        assert snapshot["layout"]["name"] == "Editor"
        assert snapshot["zoom"] == 100
        assert snapshot["grid_snap"] is True
        assert snapshot["can_undo"] is False
