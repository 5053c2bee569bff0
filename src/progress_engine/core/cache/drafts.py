"""
Local draft store for in-progress bite/mission edits.

A draft is the learner's unsaved workspace for one entity. It is written on
pause so resume can restore it without a round trip, reconciled once the
corresponding server mutation succeeds, and cleared on final submission.
Drafts are process-local and never persisted.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from progress_engine.core.exceptions import StoreClosedError
from progress_engine.core.logging.logger import get_logger

logger = get_logger(__name__)

WallClock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Draft:
    """
    Immutable snapshot of a locally-held edit.

    Attributes
    ----------
    entity_id : str
        Bite or mission id the draft belongs to
    data : Mapping[str, Any]
        Workspace fields (notes, partial answers, ...)
    saved_at : datetime
        When the draft was last written (UTC)
    """

    entity_id: str
    data: Mapping[str, Any] = field(default_factory=dict)
    saved_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "data": dict(self.data),
            "saved_at": self.saved_at.isoformat(),
        }


class DraftStore:
    """
    Thread-safe map of entity id → Draft.

    Examples
    --------
    >>> drafts = DraftStore()
    >>> drafts.save("S1M1B2", {"notes": "half done"})
    >>> drafts.get("S1M1B2").data["notes"]
    'half done'
    """

    def __init__(self, clock: Optional[WallClock] = None, name: str = "drafts") -> None:
        self._drafts: Dict[str, Draft] = {}
        self._lock = threading.Lock()
        self._clock: WallClock = clock or utc_now
        self._closed = False
        self.name = name

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise StoreClosedError(self.name, operation)

    def save(self, entity_id: str, data: Mapping[str, Any]) -> Draft:
        """Replace the draft for ``entity_id`` with a copy of ``data``."""
        draft = Draft(entity_id=entity_id, data=dict(data), saved_at=self._clock())
        with self._lock:
            self._ensure_open("save")
            self._drafts[entity_id] = draft
        return draft

    def get(self, entity_id: str) -> Optional[Draft]:
        with self._lock:
            self._ensure_open("get")
            return self._drafts.get(entity_id)

    def clear(self, entity_id: str) -> bool:
        """Drop the draft; returns whether one existed."""
        with self._lock:
            self._ensure_open("clear")
            return self._drafts.pop(entity_id, None) is not None

    def reconcile(
        self,
        entity_id: str,
        confirmed: Mapping[str, Any],
        merge: bool = False,
    ) -> Draft:
        """
        Align the local draft with state the server just confirmed.

        With ``merge=False`` the confirmed fields replace the draft outright.
        With ``merge=True`` confirmed fields win but local-only fields survive.
        """
        with self._lock:
            self._ensure_open("reconcile")
            existing = self._drafts.get(entity_id)
            if merge and existing is not None:
                data = {**existing.data, **confirmed}
            else:
                data = dict(confirmed)
            draft = Draft(entity_id=entity_id, data=data, saved_at=self._clock())
            self._drafts[entity_id] = draft

        logger.debug(
            "Draft reconciled",
            extra={"entity_id": entity_id, "merge": merge, "fields": sorted(data)},
        )
        return draft

    def entity_ids(self) -> List[str]:
        with self._lock:
            return list(self._drafts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)

    def close(self) -> None:
        with self._lock:
            self._drafts.clear()
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "DraftStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
