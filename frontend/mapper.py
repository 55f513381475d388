"""
Payload to DTO Mapper

Converts replay API JSON payloads to read-only frontend DTOs.

MAPPING BOUNDARY:
=================
This is the ONLY place where wire payloads become DTOs.
All conversion happens here, nowhere else.

MAPPING RULES:
==============
1. Never guess a missing required field: malformed payloads fail
2. Preserve backend ordering of authors and events
3. Derived display values (descriptions) come from the backend
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Mapping, Tuple

from backend.contracts.errors import LoadError
from frontend.dtos import (
    AuthorDTO, DiffDTO, DiffSpanDTO, DTOVersion, FlagDTO, SessionDTO,
    SnapshotDTO, TimelineDTO, TimelineEventDTO,
)


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


class DTOMapper:
    """
    Maps API payloads to frontend DTOs.

    SINGLE POINT OF CONVERSION:
    ===========================
    Malformed payloads raise LoadError(retryable=False): retrying the same
    request would return the same payload.
    """

    def map_timeline(self, payload: Mapping[str, Any]) -> TimelineDTO:
        try:
            authors = tuple(
                AuthorDTO(
                    author_id=a["id"],
                    display_name=a.get("displayName") or a["id"],
                    color_token=a["colorToken"],
                )
                for a in payload.get("authors", ())
            )
            events = tuple(self._map_event(e) for e in payload.get("events", ()))
            return TimelineDTO(
                dto_version=DTOVersion.current(),
                file_id=payload.get("fileId", ""),
                file_name=payload["fileName"],
                project_name=payload.get("projectName", ""),
                authors=authors,
                events=events,
                total_events=int(payload.get("totalEvents", len(events))),
                keyframe_count=int(payload.get("keyframeCount", 0)),
                keyframe_interval=int(payload.get("keyframeInterval", 0)),
                document_events=int(payload.get("documentEvents", len(events))),
                session_id=payload.get("sessionId"),
                corrupt_at=payload.get("corruptAt"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LoadError(f"Malformed timeline payload: {e}", retryable=False) from e

    def _map_event(self, data: Mapping[str, Any]) -> TimelineEventDTO:
        hint = data.get("positionHint")
        return TimelineEventDTO(
            sequence_index=int(data["sequenceIndex"]),
            timestamp=_parse_time(data["timestamp"]),
            author_id=data["authorId"],
            action_type=data["actionType"],
            word_count_delta=int(data.get("wordCountDelta", 0)),
            description=data.get("description") or "",
            seconds_from_start=float(data.get("secondsFromStart", 0.0)),
            is_keyframe=bool(data.get("isKeyframe", False)),
            position_hint=(int(hint["start"]), int(hint["end"])) if hint else None,
            flag_types=tuple(int(t) for t in data.get("flagTypes") or ()),
        )

    def map_snapshot(self, payload: Mapping[str, Any]) -> SnapshotDTO:
        try:
            counts = payload.get("wordCountsByAuthor") or {}
            return SnapshotDTO(
                dto_version=DTOVersion.current(),
                event_index=payload.get("eventIndex"),
                content=payload["content"],
                word_counts=tuple(sorted((k, int(v)) for k, v in counts.items())),
                total_word_count=int(payload.get("totalWordCount", sum(counts.values()))),
                state_hash=payload.get("stateHash", ""),
                flags=tuple(self._map_flag(f) for f in payload.get("flags") or ()),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise LoadError(f"Malformed snapshot payload: {e}", retryable=False) from e

    def _map_flag(self, data: Mapping[str, Any]) -> FlagDTO:
        flag_id = data.get("flagId")
        return FlagDTO(
            flag_type=int(data["flagType"]),
            label=data.get("flagLabel") or "Flagged",
            confidence=float(data["confidence"]),
            start=int(data["start"]),
            end=int(data["end"]),
            flagged_text=data.get("flaggedText", ""),
            flag_id=int(flag_id) if flag_id is not None else None,
        )

    def map_sessions(self, payload: Mapping[str, Any]) -> Tuple[SessionDTO, ...]:
        try:
            return tuple(
                SessionDTO(
                    session_id=s["id"],
                    start_index=int(s["startIndex"]),
                    end_index=int(s["endIndex"]),
                    start_time=_parse_time(s["startTime"]),
                    end_time=_parse_time(s["endTime"]),
                    duration_seconds=float(s.get("durationSeconds", 0.0)),
                    event_count=int(s["eventCount"]),
                    author_ids=tuple(s.get("authorIds") or ()),
                )
                for s in payload["sessions"]
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LoadError(f"Malformed sessions payload: {e}", retryable=False) from e

    def map_diff(self, payload: Mapping[str, Any]) -> DiffDTO:
        try:
            return DiffDTO(
                from_index=int(payload["fromIndex"]),
                to_index=int(payload["toIndex"]),
                added=tuple(DiffSpanDTO(s["start"], s["end"], s["text"]) for s in payload["added"]),
                removed=tuple(DiffSpanDTO(s["start"], s["end"], s["text"]) for s in payload["removed"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LoadError(f"Malformed diff payload: {e}", retryable=False) from e
