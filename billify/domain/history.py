# billify/domain/history.py
from typing import List, Optional

from billify.delivery.schemas.layout import TemplateLayout


class HistoryStack:
    """Linear snapshot history over a TemplateLayout.

    Every entry is a private deep copy. Recording after an undo discards the
    redo branch. ``max_entries`` caps memory for long sessions; None keeps
    every snapshot.
    """

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: List[TemplateLayout] = []
        self._index = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> Optional[TemplateLayout]:
        if self._index < 0:
            return None
        return self._entries[self._index]

    def can_undo(self) -> bool:
        return self._index > 0

    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def record(self, layout: TemplateLayout) -> None:
        del self._entries[self._index + 1:]
        self._entries.append(layout.model_copy(deep=True))
        if self.max_entries is not None and len(self._entries) > self.max_entries:
            del self._entries[: len(self._entries) - self.max_entries]
        self._index = len(self._entries) - 1

    def amend(self, layout: TemplateLayout) -> None:
        # Replace the snapshot under the cursor; used to fold one gesture into one entry
        if self._index < 0:
            self.record(layout)
            return
        del self._entries[self._index + 1:]
        self._entries[self._index] = layout.model_copy(deep=True)

    def undo(self) -> Optional[TemplateLayout]:
        if not self.can_undo():
            return None
        self._index -= 1
        return self._entries[self._index].model_copy(deep=True)

    def redo(self) -> Optional[TemplateLayout]:
        if not self.can_redo():
            return None
        self._index += 1
        return self._entries[self._index].model_copy(deep=True)

    def clear(self) -> None:
        self._entries.clear()
        self._index = -1
