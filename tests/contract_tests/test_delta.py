"""
Content Delta Contract Tests
============================

INVARIANTS TESTED:
1. Operations address the document after the previous operation
2. Marks shift, grow, shrink and drop with the text they cover
3. Out-of-bounds operations fail, never clamp
4. from_texts(a, b) applied to a yields b
"""

import pytest
from hypothesis import given, strategies as st

from backend.contracts.delta import (
    ContentDelta, DeleteOp, DeltaError, DocumentContent, FormatMark,
    FormatOp, InsertOp, compute_diff, count_words,
)


class TestCountWords:

    @pytest.mark.parametrize("text,expected", [
        ("", 0),
        ("   ", 0),
        ("one", 1),
        ("one two  three", 3),
        ("  leading and trailing  ", 3),
        ("line\nbreak\tand tab", 4),
    ])
    def test_whitespace_split(self, text, expected):
        assert count_words(text) == expected


class TestInsert:

    def test_insert_into_empty(self):
        doc = InsertOp(0, "hello").apply(DocumentContent.empty())
        assert doc.text == "hello"

    def test_insert_middle(self):
        doc = InsertOp(5, ",").apply(DocumentContent("hello world"))
        assert doc.text == "hello, world"

    def test_insert_past_end_fails(self):
        with pytest.raises(DeltaError):
            InsertOp(4, "x").apply(DocumentContent("abc"))

    def test_insert_negative_fails(self):
        with pytest.raises(DeltaError):
            InsertOp(-1, "x").apply(DocumentContent("abc"))

    def test_marks_after_position_shift(self):
        doc = DocumentContent("abcdef", (FormatMark(3, 5, "bold"),))
        out = InsertOp(1, "XX").apply(doc)
        assert out.marks == (FormatMark(5, 7, "bold"),)

    def test_mark_spanning_position_grows(self):
        doc = DocumentContent("abcdef", (FormatMark(1, 4, "italic"),))
        out = InsertOp(2, "ZZZ").apply(doc)
        assert out.marks == (FormatMark(1, 7, "italic"),)

    def test_mark_ending_at_position_unchanged(self):
        doc = DocumentContent("abcdef", (FormatMark(0, 3, "bold"),))
        out = InsertOp(3, "!").apply(doc)
        assert out.marks == (FormatMark(0, 3, "bold"),)


class TestDelete:

    def test_delete_range(self):
        doc = DeleteOp(5, 6).apply(DocumentContent("hello world"))
        assert doc.text == "hello"

    def test_delete_out_of_bounds_fails(self):
        with pytest.raises(DeltaError):
            DeleteOp(3, 5).apply(DocumentContent("abcdef"))

    def test_negative_length_fails(self):
        with pytest.raises(DeltaError):
            DeleteOp(0, -1).apply(DocumentContent("abc"))

    def test_mark_shrinks(self):
        doc = DocumentContent("abcdefgh", (FormatMark(0, 5, "bold"),))
        out = DeleteOp(2, 3).apply(doc)
        assert out.text == "abfgh"
        assert out.marks == (FormatMark(0, 2, "bold"),)

    def test_mark_inside_deleted_range_dropped(self):
        doc = DocumentContent("abcdefgh", (FormatMark(3, 4, "bold"),))
        out = DeleteOp(2, 3).apply(doc)
        assert out.marks == ()

    def test_mark_after_range_shifts_left(self):
        doc = DocumentContent("abcdefgh", (FormatMark(6, 8, "bold"),))
        out = DeleteOp(0, 2).apply(doc)
        assert out.marks == (FormatMark(4, 6, "bold"),)


class TestFormat:

    def test_adds_mark(self):
        out = FormatOp(0, 3, "bold").apply(DocumentContent("abcdef"))
        assert out.text == "abcdef"
        assert out.marks == (FormatMark(0, 3, "bold"),)

    @pytest.mark.parametrize("start,end", [(2, 2), (3, 1), (0, 7), (-1, 2)])
    def test_invalid_range_fails(self, start, end):
        with pytest.raises(DeltaError):
            FormatOp(start, end, "bold").apply(DocumentContent("abcdef"))

    def test_style_required(self):
        with pytest.raises(DeltaError):
            FormatOp(0, 1, "").apply(DocumentContent("abc"))


class TestContentDelta:

    def test_empty_delta_is_identity(self):
        doc = DocumentContent("unchanged", (FormatMark(0, 2, "bold"),))
        assert ContentDelta.empty().apply(doc) == doc
        assert ContentDelta.empty().is_empty

    def test_ops_apply_in_order(self):
        delta = ContentDelta(ops=(InsertOp(0, "abc"), DeleteOp(1, 1), InsertOp(2, "Z")))
        assert delta.apply(DocumentContent.empty()).text == "acZ"

    def test_compose_equals_sequential_apply(self):
        first = ContentDelta.insert(0, "hello")
        second = ContentDelta.insert(5, " world")
        doc = DocumentContent.empty()
        assert first.compose(second).apply(doc) == second.apply(first.apply(doc))

    def test_from_texts_minimal_insert(self):
        delta = ContentDelta.from_texts("hello world", "hello brave world")
        assert delta.ops == (InsertOp(6, "brave "),)

    def test_from_texts_replacement(self):
        delta = ContentDelta.from_texts("the cat sat", "the dog sat")
        assert delta.ops == (DeleteOp(4, 3), InsertOp(4, "dog"))

    def test_from_texts_identical_is_empty(self):
        assert ContentDelta.from_texts("same", "same").is_empty

    def test_to_list_wire_shape(self):
        delta = ContentDelta(ops=(InsertOp(0, "a"), DeleteOp(0, 1), FormatOp(0, 1, "b")))
        assert [d["op"] for d in delta.to_list()] == ["insert", "delete", "format"]

    @given(st.text(max_size=40), st.text(max_size=40))
    def test_from_texts_transforms_before_into_after(self, before, after):
        delta = ContentDelta.from_texts(before, after)
        assert delta.apply(DocumentContent(before)).text == after
        assert len(delta.ops) <= 2


class TestComputeDiff:

    def test_added_span(self):
        diff = compute_diff("hello world", "hello brave world")
        assert [(s.start, s.end, s.text) for s in diff.added] == [(6, 12, "brave ")]
        assert diff.removed == ()

    def test_removed_span(self):
        diff = compute_diff("hello brave world", "hello world")
        assert [(s.start, s.end, s.text) for s in diff.removed] == [(6, 12, "brave ")]
        assert diff.added == ()

    def test_identical_is_empty(self):
        assert compute_diff("x", "x").is_empty

    @given(st.text(max_size=30), st.text(max_size=30))
    def test_spans_cover_the_changed_middle(self, before, after):
        diff = compute_diff(before, after)
        removed = diff.removed[0] if diff.removed else None
        added = diff.added[0] if diff.added else None
        start = removed.start if removed else (added.start if added else len(before))
        rebuilt = before[:start] + (added.text if added else "") + before[removed.end if removed else start:]
        assert rebuilt == after
