"""
API Mapper
==========

Transforms engine views (TimelineView, ReconstructedState, AuthorStats)
into the wire payloads of the read API.

Exposes recorded data as-is: no smoothing, no content in timeline listings.
"""
from typing import Any, Dict, Iterable, Mapping

from ..contracts.delta import DiffSpan, TextDiff
from ..contracts.events import AuthorStats, ReconstructedState
from ..domain.serialization import author_to_dict, event_metadata, keyframe_to_dict, state_to_dict
from ..engine import TimelineView
from ..temporal.sessions import WorkSession


def map_timeline_to_dto(view: TimelineView) -> Dict[str, Any]:
    """Timeline metadata: authors and events without their content deltas."""
    return {
        "fileId": view.file_id,
        "fileName": view.file_name,
        "projectName": view.project_name,
        "authors": [author_to_dict(a) for a in view.authors],
        "events": [
            event_metadata(
                entry.event,
                seconds_from_start=entry.seconds_from_start,
                is_keyframe=entry.is_keyframe,
            )
            for entry in view.entries
        ],
        "totalEvents": view.total_events,
        "documentEvents": view.document_events,
        "sessionId": view.session_id,
        "corruptAt": view.corrupt_at,
        "keyframeCount": view.keyframe_count,
        "keyframeInterval": view.keyframe_interval,
    }


def map_state_to_dto(state: ReconstructedState) -> Dict[str, Any]:
    dto = state_to_dict(state)
    dto["keyframeIndex"] = state.keyframe_index
    dto["eventsReplayed"] = state.events_replayed
    return dto


def map_stats_to_dto(event_index: int, stats: Mapping[str, AuthorStats]) -> Dict[str, Any]:
    total = sum(s.word_count for s in stats.values())
    return {
        "eventIndex": event_index,
        "totalWordCount": total,
        "authors": [
            {
                "authorId": s.author_id,
                "wordCount": s.word_count,
                "eventCount": s.event_count,
                "lastEventIndex": s.last_event_index,
                "share": s.share_of(total),
            }
            for s in stats.values()
        ],
    }


def _span(span: DiffSpan) -> Dict[str, Any]:
    return {"start": span.start, "end": span.end, "text": span.text}


def map_diff_to_dto(from_index: int, to_index: int, diff: TextDiff) -> Dict[str, Any]:
    return {
        "fromIndex": from_index,
        "toIndex": to_index,
        "added": [_span(s) for s in diff.added],
        "removed": [_span(s) for s in diff.removed],
    }


def map_keyframes_to_dto(keyframes) -> Dict[str, Any]:
    return {"keyframes": [keyframe_to_dict(k) for k in keyframes]}


def map_sessions_to_dto(file_id: str, sessions: Iterable[WorkSession]) -> Dict[str, Any]:
    return {
        "fileId": file_id,
        "sessions": [
            {
                "id": s.session_id,
                "startIndex": s.start_index,
                "endIndex": s.end_index,
                "startTime": s.start_time.to_iso(),
                "endTime": s.end_time.to_iso(),
                "durationSeconds": s.duration_seconds,
                "eventCount": s.event_count,
                "authorIds": list(s.author_ids),
            }
            for s in sessions
        ],
    }
