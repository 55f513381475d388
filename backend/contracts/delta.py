"""
Content Delta Contracts
=======================

Document content and the patches that move it between events.

DOCUMENT MODEL:
- DocumentContent is plain text plus an ordered tuple of format marks
- Marks are half-open [start, end) ranges carrying a style name
- Both text and marks are immutable; applying a delta returns a new value

DELTA MODEL:
- A ContentDelta is an ordered tuple of operations applied left to right
- Operations address the document as it is AFTER the previous operation
- compose(a, b) == apply a, then apply b

A delta that addresses text outside the document raises DeltaError.
Callers that replay recorded history turn that into CorruptHistoryError.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union
import hashlib
import re


class DeltaError(ValueError):
    """A delta operation does not fit the document it is applied to."""
    pass


_WORD_SPLIT = re.compile(r"\s+")


def count_words(text: str) -> int:
    """Count whitespace separated, non-empty tokens."""
    return len([w for w in _WORD_SPLIT.split(text.strip()) if w])


# =============================================================================
# DOCUMENT CONTENT
# =============================================================================

@dataclass(frozen=True)
class FormatMark:
    """A style applied to the half-open range [start, end)."""
    start: int
    end: int
    style: str

    def to_dict(self) -> Dict[str, object]:
        return {"start": self.start, "end": self.end, "style": self.style}


@dataclass(frozen=True)
class DocumentContent:
    """
    Materialized document content.

    Equality is structural, so two reconstructions that produce the same
    text and the same marks compare equal.
    """
    text: str = ""
    marks: Tuple[FormatMark, ...] = field(default_factory=tuple)

    @staticmethod
    def empty() -> 'DocumentContent':
        return DocumentContent()

    @property
    def word_count(self) -> int:
        return count_words(self.text)

    @property
    def content_hash(self) -> str:
        marks = ";".join(f"{m.start}:{m.end}:{m.style}" for m in self.marks)
        payload = f"{self.text}\x00{marks}"
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()

    def to_dict(self) -> Dict[str, object]:
        return {
            "text": self.text,
            "marks": [m.to_dict() for m in self.marks],
        }


# =============================================================================
# OPERATIONS
# =============================================================================

@dataclass(frozen=True)
class InsertOp:
    """Insert text at position."""
    position: int
    text: str

    kind = "insert"

    def apply(self, doc: DocumentContent) -> DocumentContent:
        if not 0 <= self.position <= len(doc.text):
            raise DeltaError(
                f"insert at {self.position} outside document of length {len(doc.text)}"
            )
        if not self.text:
            return doc

        size = len(self.text)
        marks = []
        for mark in doc.marks:
            if mark.start >= self.position:
                marks.append(FormatMark(mark.start + size, mark.end + size, mark.style))
            elif mark.end > self.position:
                # Insertion inside a mark extends it
                marks.append(FormatMark(mark.start, mark.end + size, mark.style))
            else:
                marks.append(mark)

        text = doc.text[:self.position] + self.text + doc.text[self.position:]
        return DocumentContent(text=text, marks=tuple(marks))

    def to_dict(self) -> Dict[str, object]:
        return {"op": self.kind, "position": self.position, "text": self.text}


@dataclass(frozen=True)
class DeleteOp:
    """Delete `length` characters starting at position."""
    position: int
    length: int

    kind = "delete"

    def apply(self, doc: DocumentContent) -> DocumentContent:
        if self.length < 0:
            raise DeltaError(f"delete with negative length {self.length}")
        end = self.position + self.length
        if self.position < 0 or end > len(doc.text):
            raise DeltaError(
                f"delete [{self.position}, {end}) outside document of length {len(doc.text)}"
            )
        if self.length == 0:
            return doc

        def remap(offset: int) -> int:
            if offset <= self.position:
                return offset
            if offset <= end:
                return self.position
            return offset - self.length

        marks = []
        for mark in doc.marks:
            start, stop = remap(mark.start), remap(mark.end)
            if start < stop:
                marks.append(FormatMark(start, stop, mark.style))

        text = doc.text[:self.position] + doc.text[end:]
        return DocumentContent(text=text, marks=tuple(marks))

    def to_dict(self) -> Dict[str, object]:
        return {"op": self.kind, "position": self.position, "length": self.length}


@dataclass(frozen=True)
class FormatOp:
    """Apply a style to [start, end)."""
    start: int
    end: int
    style: str

    kind = "format"

    def apply(self, doc: DocumentContent) -> DocumentContent:
        if not 0 <= self.start < self.end <= len(doc.text):
            raise DeltaError(
                f"format [{self.start}, {self.end}) outside document of length {len(doc.text)}"
            )
        if not self.style:
            raise DeltaError("format operation requires a style")
        mark = FormatMark(self.start, self.end, self.style)
        return DocumentContent(text=doc.text, marks=doc.marks + (mark,))

    def to_dict(self) -> Dict[str, object]:
        return {"op": self.kind, "start": self.start, "end": self.end, "style": self.style}


DeltaOp = Union[InsertOp, DeleteOp, FormatOp]


# =============================================================================
# DELTA
# =============================================================================

@dataclass(frozen=True)
class ContentDelta:
    """
    Composable patch over DocumentContent.

    An empty delta is valid and leaves the document unchanged
    (comment events carry one).
    """
    ops: Tuple[DeltaOp, ...] = field(default_factory=tuple)

    @staticmethod
    def empty() -> 'ContentDelta':
        return ContentDelta()

    @staticmethod
    def insert(position: int, text: str) -> 'ContentDelta':
        return ContentDelta(ops=(InsertOp(position, text),))

    @staticmethod
    def delete(position: int, length: int) -> 'ContentDelta':
        return ContentDelta(ops=(DeleteOp(position, length),))

    @staticmethod
    def format(start: int, end: int, style: str) -> 'ContentDelta':
        return ContentDelta(ops=(FormatOp(start, end, style),))

    @staticmethod
    def from_texts(before: str, after: str) -> 'ContentDelta':
        """
        Build the delta that turns `before` into `after`.

        Uses common prefix/suffix detection, so the result is at most one
        delete followed by one insert covering the changed middle.
        """
        if before == after:
            return ContentDelta.empty()

        prefix, before_end, after_end = _changed_window(before, after)

        ops: List[DeltaOp] = []
        if before_end > prefix:
            ops.append(DeleteOp(prefix, before_end - prefix))
        if after_end > prefix:
            ops.append(InsertOp(prefix, after[prefix:after_end]))
        return ContentDelta(ops=tuple(ops))

    @property
    def is_empty(self) -> bool:
        return not self.ops

    def compose(self, other: 'ContentDelta') -> 'ContentDelta':
        """Delta equivalent to applying self then other."""
        return ContentDelta(ops=self.ops + other.ops)

    def apply(self, doc: DocumentContent) -> DocumentContent:
        for op in self.ops:
            doc = op.apply(doc)
        return doc

    def to_list(self) -> List[Dict[str, object]]:
        return [op.to_dict() for op in self.ops]


# =============================================================================
# SNAPSHOT DIFF (highlighting support)
# =============================================================================

@dataclass(frozen=True)
class DiffSpan:
    """A changed span; offsets refer to the side the span belongs to."""
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class TextDiff:
    added: Tuple[DiffSpan, ...]
    removed: Tuple[DiffSpan, ...]

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


def _changed_window(before: str, after: str) -> Tuple[int, int, int]:
    """Return (prefix_len, before_end, after_end) of the changed middle."""
    prefix = 0
    limit = min(len(before), len(after))
    while prefix < limit and before[prefix] == after[prefix]:
        prefix += 1

    before_end, after_end = len(before), len(after)
    while (
        before_end > prefix
        and after_end > prefix
        and before[before_end - 1] == after[after_end - 1]
    ):
        before_end -= 1
        after_end -= 1

    return prefix, before_end, after_end


def compute_diff(before: str, after: str) -> TextDiff:
    """Added/removed spans between two snapshots."""
    if before == after:
        return TextDiff(added=(), removed=())

    prefix, before_end, after_end = _changed_window(before, after)

    added = ()
    removed = ()
    if after_end > prefix:
        added = (DiffSpan(prefix, after_end, after[prefix:after_end]),)
    if before_end > prefix:
        removed = (DiffSpan(prefix, before_end, before[prefix:before_end]),)
    return TextDiff(added=added, removed=removed)
