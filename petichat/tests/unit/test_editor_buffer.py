from __future__ import annotations

import pytest

from petichat.core.errors import ValidationError
from petichat.editor.buffer import EditorBuffer


def test_edit_before_handle_shifts_it() -> None:
    buffer = EditorBuffer("O autor requer a condenação do réu.")
    handle = buffer.track(17, 27)
    assert buffer.slice(handle.start, handle.end) == "condenação"
    buffer.insert(0, "Assim, ")
    assert buffer.slice(handle.start, handle.end) == "condenação"
    assert not handle.touched


def test_edit_after_handle_leaves_it_alone() -> None:
    buffer = EditorBuffer("dano moral e dano material")
    handle = buffer.track(0, 10)
    buffer.replace(13, 26, "lucros cessantes")
    assert buffer.slice(handle.start, handle.end) == "dano moral"


def test_duplicate_substrings_resolve_by_position() -> None:
    # The second "dano" is tracked; replacing it must not touch the first.
    buffer = EditorBuffer("dano e dano")
    handle = buffer.track(7, 11)
    buffer.replace_handle(handle, "prejuízo")
    assert buffer.text == "dano e prejuízo"


def test_overlapping_edit_marks_handle_touched() -> None:
    buffer = EditorBuffer("abcdefghij")
    handle = buffer.track(2, 6)
    buffer.replace(4, 8, "XY")
    assert handle.touched
    assert (handle.start, handle.end) == (2, 6)
    assert buffer.text == "abcdXYij"


def test_insertion_inside_handle_extends_it() -> None:
    buffer = EditorBuffer("abcdef")
    handle = buffer.track(1, 4)
    buffer.insert(2, "ZZ")
    assert buffer.slice(handle.start, handle.end) == "bZZcd"


def test_out_of_range_selection_is_rejected() -> None:
    buffer = EditorBuffer("curto")
    with pytest.raises(ValidationError):
        buffer.track(2, 10)
    with pytest.raises(ValidationError):
        buffer.slice(3, 1)


def test_released_handle_cannot_be_replaced() -> None:
    buffer = EditorBuffer("texto")
    handle = buffer.track(0, 5)
    buffer.release(handle)
    with pytest.raises(ValidationError):
        buffer.replace_handle(handle, "outro")
