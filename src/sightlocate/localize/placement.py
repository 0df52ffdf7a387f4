from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, replace

import numpy as np

from sightlocate.core.geometry import Pose, as_vec3
from sightlocate.core.planes import Plane

logger = logging.getLogger(__name__)

# Snap animation speed: 2 mm per second.
SNAP_SECONDS_PER_METER = 500.0


def resolve_placement(raw_position: np.ndarray, camera_position: np.ndarray, max_distance: float) -> np.ndarray:
    """
    Pull `raw_position` back along the camera ray so it is at most `max_distance` away.
    """
    raw = as_vec3(raw_position, "raw_position")
    cam = as_vec3(camera_position, "camera_position")
    if max_distance < 0:
        raise ValueError("max_distance must be >= 0")
    offset = raw - cam
    dist = float(np.linalg.norm(offset))
    if dist > max_distance:
        offset = offset / dist * float(max_distance)
    return cam + offset


def snap_to_plane(
    position: np.ndarray,
    plane: Plane,
    tolerance_fraction: float = 0.1,
    vertical_allowance: float = 0.05,
    epsilon: float = 0.001,
) -> float | None:
    """
    World Y an object at `position` should move to so that it rests on `plane`.

    None means "leave it": already on the plane, footprint outside the (grown)
    extent, or vertical gap not strictly between `epsilon` and `vertical_allowance`.
    """
    local = plane.to_local(as_vec3(position, "position"))
    if local[1] == 0.0:
        return None
    if not plane.contains_local(local[0], local[2], tolerance=tolerance_fraction):
        return None
    gap = abs(float(local[1]))
    if not (epsilon < gap < vertical_allowance):
        return None
    on_plane = np.array([local[0], 0.0, local[2]], dtype=np.float64)
    return float(plane.to_world(on_plane)[1])


def snap_duration_s(distance: float) -> float:
    return abs(float(distance)) * SNAP_SECONDS_PER_METER


@dataclass(eq=False)
class PlacedObject:
    label: str
    position: np.ndarray
    scale: float = 0.05  # edge of the marker cube, metres
    yaw_rad: float = 0.0

    def __post_init__(self) -> None:
        self.position = as_vec3(self.position, "position").copy()


@dataclass(frozen=True)
class SnapEvent:
    label: str
    plane_id: str
    from_y: float
    to_y: float
    duration_s: float


@dataclass(frozen=True)
class RelativeTransform:
    distance: float
    yaw_deg: int
    scale: float


class PlacedObjectStore:
    """
    Objects that have been localized and handed to the renderer.

    Positions may change afterwards when a nearby plane shows up (`snap_onto_plane`);
    the store only computes targets and durations, the renderer animates.
    Every object handed out is a copy taken under the lock.
    """

    def __init__(self, max_distance: float = 10.0) -> None:
        self.max_distance = float(max_distance)
        self._objects: list[PlacedObject] = []
        self._last_used: PlacedObject | None = None
        self._lock = threading.Lock()

    def place(
        self,
        label: str,
        raw_position: np.ndarray,
        camera_pose: Pose,
        max_distance: float | None = None,
    ) -> PlacedObject:
        limit = self.max_distance if max_distance is None else float(max_distance)
        position = resolve_placement(raw_position, camera_pose.translation, limit)
        obj = PlacedObject(label=label, position=position)
        with self._lock:
            self._objects.append(obj)
            self._last_used = obj
            out = replace(obj)
        logger.info("placed %r at %s", label, np.round(position, 3).tolist())
        return out

    def objects(self) -> list[PlacedObject]:
        with self._lock:
            return [replace(obj) for obj in self._objects]

    @property
    def last_used(self) -> PlacedObject | None:
        with self._lock:
            return None if self._last_used is None else replace(self._last_used)

    def remove_all(self) -> None:
        with self._lock:
            n = len(self._objects)
            self._objects.clear()
            self._last_used = None
        if n:
            logger.info("cleared %d placed object(s)", n)

    def snap_onto_plane(
        self,
        plane: Plane,
        tolerance_fraction: float = 0.1,
        vertical_allowance: float = 0.05,
        epsilon: float = 0.001,
    ) -> list[SnapEvent]:
        events: list[SnapEvent] = []
        with self._lock:
            for obj in self._objects:
                new_y = snap_to_plane(
                    obj.position,
                    plane,
                    tolerance_fraction=tolerance_fraction,
                    vertical_allowance=vertical_allowance,
                    epsilon=epsilon,
                )
                if new_y is None:
                    continue
                old_y = float(obj.position[1])
                obj.position[1] = new_y
                events.append(
                    SnapEvent(
                        label=obj.label,
                        plane_id=plane.plane_id,
                        from_y=old_y,
                        to_y=new_y,
                        duration_s=snap_duration_s(new_y - old_y),
                    )
                )
        for ev in events:
            logger.info("moved %r onto plane %s (%.3f -> %.3f)", ev.label, ev.plane_id, ev.from_y, ev.to_y)
        return events

    @staticmethod
    def relative_transform(obj: PlacedObject, camera_pose: Pose) -> RelativeTransform:
        """Distance to the camera, object yaw in whole degrees [0, 360), and scale."""
        distance = float(np.linalg.norm(camera_pose.translation - obj.position))
        yaw_deg = int(math.degrees(obj.yaw_rad)) % 360
        return RelativeTransform(distance=distance, yaw_deg=yaw_deg, scale=float(obj.scale))
