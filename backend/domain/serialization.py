import json
from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..contracts.base import Timestamp
from ..contracts.delta import (
    ContentDelta, DeleteOp, DeltaOp, DocumentContent, FormatMark, FormatOp, InsertOp,
)
from ..contracts.events import (
    ActionType, Author, FlagType, Keyframe, PositionHint, ReconstructedState, ReplayFlag,
    TimelineEvent,
)


class StrictReplayEncoder(json.JSONEncoder):
    """
    JSON Encoder that prioritizes Fidelity over Flexibility.

    RULES:
    1. Dates MUST be ISO 8601 strings (UTC).
    2. Enums MUST use their .value.
    3. Sets -> Lists (sorted for determinism).
    4. Objects exposing to_dict() are encoded through it.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Timestamp):
            return obj.to_iso()
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(list(obj))
        if hasattr(obj, "to_dict"):
            return obj.to_dict()

        return super().default(obj)


def dumps(payload: Any) -> str:
    """Deterministic JSON text (sorted keys, compact separators)."""
    return json.dumps(payload, cls=StrictReplayEncoder, sort_keys=True, separators=(",", ":"))


class SerializationError(ValueError):
    """A wire payload does not describe a valid contract value."""
    pass


# =============================================================================
# DELTAS
# =============================================================================

def delta_to_list(delta: ContentDelta) -> List[Dict[str, Any]]:
    return delta.to_list()


def op_from_dict(data: Mapping[str, Any]) -> DeltaOp:
    kind = data.get("op")
    try:
        if kind == "insert":
            return InsertOp(position=int(data["position"]), text=str(data["text"]))
        if kind == "delete":
            return DeleteOp(position=int(data["position"]), length=int(data["length"]))
        if kind == "format":
            return FormatOp(start=int(data["start"]), end=int(data["end"]), style=str(data["style"]))
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationError(f"Malformed {kind} operation: {data!r}") from e
    raise SerializationError(f"Unknown delta operation: {kind!r}")


def delta_from_list(items: Optional[Iterable[Mapping[str, Any]]]) -> ContentDelta:
    return ContentDelta(ops=tuple(op_from_dict(item) for item in (items or ())))


def content_to_dict(content: DocumentContent) -> Dict[str, Any]:
    return content.to_dict()


def content_from_dict(data: Mapping[str, Any]) -> DocumentContent:
    marks = tuple(
        FormatMark(start=int(m["start"]), end=int(m["end"]), style=str(m["style"]))
        for m in data.get("marks", ())
    )
    return DocumentContent(text=str(data.get("text", "")), marks=marks)


# =============================================================================
# AUTHORS & EVENTS
# =============================================================================

def author_to_dict(author: Author) -> Dict[str, Any]:
    return {
        "id": author.id,
        "displayName": author.display_name,
        "colorToken": author.color_token,
    }


def author_from_dict(data: Mapping[str, Any], ordinal: int = 0) -> Author:
    try:
        return Author.create(
            author_id=str(data["id"]),
            display_name=str(data.get("displayName") or data["id"]),
            ordinal=ordinal,
            color_token=data.get("colorToken"),
        )
    except KeyError as e:
        raise SerializationError(f"Author payload missing {e}") from e


def flag_to_dict(flag: ReplayFlag) -> Dict[str, Any]:
    data = flag.to_dict()
    data["flagLabel"] = flag.flag_type.label
    return data


def flag_from_dict(data: Mapping[str, Any]) -> ReplayFlag:
    try:
        flag_id = data.get("flagId")
        return ReplayFlag(
            flag_type=FlagType(int(data["flagType"])),
            confidence=float(data["confidence"]),
            start=int(data["start"]),
            end=int(data["end"]),
            flagged_text=str(data.get("flaggedText", "")),
            flag_id=int(flag_id) if flag_id is not None else None,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationError(f"Malformed flag payload: {data!r}") from e


def event_metadata(event: TimelineEvent, seconds_from_start: Optional[float] = None,
                   is_keyframe: Optional[bool] = None) -> Dict[str, Any]:
    """
    Event fields for timeline listings: everything except the content delta.

    Flags appear only as their type codes; flagged text is content.
    """
    data: Dict[str, Any] = {
        "sequenceIndex": event.sequence_index,
        "timestamp": event.timestamp.to_iso(),
        "authorId": event.author_id,
        "actionType": event.action_type.value,
        "wordCountDelta": event.word_count_delta,
        "positionHint": event.position_hint.to_dict() if event.position_hint else None,
        "description": event.summary,
        "hasFlags": bool(event.flags),
        "flagTypes": list(event.flag_types),
    }
    if seconds_from_start is not None:
        data["secondsFromStart"] = seconds_from_start
    if is_keyframe is not None:
        data["isKeyframe"] = is_keyframe
    return data


def event_to_dict(event: TimelineEvent) -> Dict[str, Any]:
    """Full event record, as persisted."""
    data = event_metadata(event)
    data["description"] = event.description
    data["contentDelta"] = delta_to_list(event.content_delta)
    data["flags"] = [flag_to_dict(f) for f in event.flags]
    return data


def event_from_dict(data: Mapping[str, Any]) -> TimelineEvent:
    try:
        hint = data.get("positionHint")
        return TimelineEvent(
            sequence_index=int(data["sequenceIndex"]),
            timestamp=Timestamp.from_iso(str(data["timestamp"])),
            author_id=str(data["authorId"]),
            action_type=ActionType(data["actionType"]),
            content_delta=delta_from_list(data.get("contentDelta")),
            word_count_delta=int(data.get("wordCountDelta", 0)),
            position_hint=PositionHint(int(hint["start"]), int(hint["end"])) if hint else None,
            description=data.get("description"),
            flags=tuple(flag_from_dict(f) for f in data.get("flags") or ()),
        )
    except (KeyError, TypeError, ValueError) as e:
        if isinstance(e, SerializationError):
            raise
        raise SerializationError(f"Malformed event payload: {e}") from e


# =============================================================================
# DERIVED STATE
# =============================================================================

def state_to_dict(state: ReconstructedState) -> Dict[str, Any]:
    return {
        "eventIndex": state.at_index,
        "content": state.content.text,
        "marks": [m.to_dict() for m in state.content.marks],
        "wordCountsByAuthor": state.word_counts_by_author,
        "totalWordCount": state.total_word_count,
        "stateHash": state.state_hash,
        "flags": [flag_to_dict(f) for f in state.flags],
    }


def keyframe_to_dict(keyframe: Keyframe) -> Dict[str, Any]:
    return {
        "atIndex": keyframe.at_index,
        "compressedContent": keyframe.compressed_content(),
        "marks": [m.to_dict() for m in keyframe.content.marks],
        "originalSize": keyframe.original_size,
        "compressedSize": keyframe.compressed_size,
        "wordCountsByAuthor": keyframe.word_counts_by_author,
    }
