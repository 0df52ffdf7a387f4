from __future__ import annotations

import logging
import threading

from sightlocate.core.planes import Plane

logger = logging.getLogger(__name__)


class PlaneRegistry:
    """
    Live set of tracked planes, keyed by anchor id.

    Writers (the tracking callbacks) and readers (localization queries) may run on
    different threads. Readers work on `snapshot()`, an immutable copy taken under the
    lock, so a query never sees a half-applied update.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._planes: dict[str, Plane] = {}

    def add(self, plane: Plane) -> None:
        """Insert or replace by id. A replaced plane keeps its original position."""
        with self._lock:
            replaced = plane.plane_id in self._planes
            self._planes[plane.plane_id] = plane
            n = len(self._planes)
        logger.debug("%s plane %s (%d tracked)", "updated" if replaced else "added", plane.plane_id, n)

    def remove(self, plane_id: str) -> None:
        with self._lock:
            removed = self._planes.pop(plane_id, None)
            n = len(self._planes)
        if removed is not None:
            logger.debug("removed plane %s (%d tracked)", plane_id, n)

    def get(self, plane_id: str) -> Plane | None:
        with self._lock:
            return self._planes.get(plane_id)

    def clear(self) -> None:
        with self._lock:
            self._planes.clear()

    def snapshot(self) -> tuple[Plane, ...]:
        with self._lock:
            return tuple(self._planes.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._planes)

    def __contains__(self, plane_id: object) -> bool:
        with self._lock:
            return plane_id in self._planes
