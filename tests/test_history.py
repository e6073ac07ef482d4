from billify.delivery.schemas.layout import Position
from billify.domain.component_registry import create_blank_template, create_component
from billify.domain.history import HistoryStack


def _layout_with(n: int):
    layout = create_blank_template("History")
    layout.components = [create_component("text", Position(x=i * 10, y=0)) for i in range(n)]
    return layout


class TestHistoryStack:
    def test_empty(self):
        history = HistoryStack()
        assert history.current is None
        assert not history.can_undo() and not history.can_redo()
        assert history.undo() is None and history.redo() is None

    def test_undo_redo_walks_snapshots(self):
        history = HistoryStack()
        for n in range(3):
            history.record(_layout_with(n))
        assert len(history.undo().components) == 1
        assert len(history.undo().components) == 0
        assert history.undo() is None
        assert len(history.redo().components) == 1
        assert len(history.redo().components) == 2
        assert history.redo() is None

    def test_record_truncates_redo_branch(self):
        history = HistoryStack()
        for n in range(3):
            history.record(_layout_with(n))
        history.undo()
        history.undo()
        history.record(_layout_with(5))
        assert len(history) == 2
        assert not history.can_redo()
        assert len(history.current.components) == 5

    def test_snapshots_are_isolated(self):
        history = HistoryStack()
        layout = _layout_with(1)
        history.record(layout)
        layout.components[0].position.x = 500
        assert history.current.components[0].position.x == 0

        history.record(_layout_with(2))
        restored = history.undo()
        restored.components.clear()
        assert len(history.current.components) == 1

    def test_amend_replaces_current_entry(self):
        history = HistoryStack()
        history.record(_layout_with(0))
        history.record(_layout_with(1))
        history.amend(_layout_with(4))
        assert len(history) == 2
        assert len(history.current.components) == 4
        assert len(history.undo().components) == 0

    def test_cap_drops_oldest(self):
        history = HistoryStack(max_entries=2)
        for n in range(4):
            history.record(_layout_with(n))
        assert len(history) == 2
        assert history.index == 1
        assert len(history.undo().components) == 2
        assert history.undo() is None

    def test_clear(self):
        history = HistoryStack()
        history.record(_layout_with(1))
        history.clear()
        assert history.current is None and history.index == -1
