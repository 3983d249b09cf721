from __future__ import annotations

from petichat.core.errors import ValidationError


class SelectionHandle:
    """A [start, end) range kept live across edits made through its buffer.

    Positions are remapped on every edit instead of being re-found by text,
    so duplicate substrings and edits elsewhere never move the range onto the
    wrong words.
    """

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        # Set when an edit overlapped the tracked range.
        self.touched = False
        self.released = False

    def _remap(self, edit_start: int, edit_end: int, inserted: int) -> None:
        delta = inserted - (edit_end - edit_start)
        if edit_start == edit_end:
            # Pure insertion: text typed at the start edge stays outside, at the end edge too.
            if edit_start <= self.start:
                self.start += inserted
                self.end += inserted
            elif edit_start < self.end:
                self.end += inserted
                self.touched = True
            return
        if edit_end <= self.start:
            self.start += delta
            self.end += delta
            return
        if edit_start >= self.end:
            return
        # Overlap: clamp the range to cover whatever replaced the overlapped text.
        self.touched = True
        new_start = min(self.start, edit_start)
        if self.end <= edit_end:
            new_end = edit_start + inserted
        else:
            new_end = self.end + delta
        self.start, self.end = new_start, max(new_start, new_end)

    @property
    def length(self) -> int:
        return self.end - self.start


class EditorBuffer:
    def __init__(self, text: str = "") -> None:
        self._text = text
        self._handles: list[SelectionHandle] = []

    @property
    def text(self) -> str:
        return self._text

    def __len__(self) -> int:
        return len(self._text)

    def _check_range(self, start: int, end: int) -> None:
        if start < 0 or end < start or end > len(self._text):
            raise ValidationError(
                "Seleção inválida",
                details=[{"field": "range", "message": f"{start}..{end} outside 0..{len(self._text)}"}],
            )

    def slice(self, start: int, end: int) -> str:
        self._check_range(start, end)
        return self._text[start:end]

    def track(self, start: int, end: int) -> SelectionHandle:
        self._check_range(start, end)
        handle = SelectionHandle(start, end)
        self._handles.append(handle)
        return handle

    def release(self, handle: SelectionHandle) -> None:
        if handle in self._handles:
            self._handles.remove(handle)
        handle.released = True

    def replace(self, start: int, end: int, text: str) -> None:
        # Every mutation funnels through here so tracked handles stay consistent.
        self._check_range(start, end)
        self._text = self._text[:start] + text + self._text[end:]
        for handle in self._handles:
            handle._remap(start, end, len(text))

    def insert(self, position: int, text: str) -> None:
        self.replace(position, position, text)

    def delete(self, start: int, end: int) -> None:
        self.replace(start, end, "")

    def replace_handle(self, handle: SelectionHandle, text: str) -> None:
        if handle.released:
            raise ValidationError("Seleção não está mais ativa")
        self.replace(handle.start, handle.end, text)
