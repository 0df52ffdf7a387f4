from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from sightlocate.core.geometry import Ray
from sightlocate.core.planes import Plane


@dataclass(frozen=True, eq=False)
class LocalizationResult:
    """
    Outcome of one localization query.

    An empty result (position None) is not an error: the caller retries on a later frame.
    `source` records which path produced the position: "plane", "feature", "ground"
    or "stereo".
    """

    position: np.ndarray | None = None
    plane_id: str | None = None
    hit_plane: bool = False
    source: str | None = None

    @property
    def found(self) -> bool:
        return self.position is not None

    @classmethod
    def empty(cls) -> "LocalizationResult":
        return cls()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocalizationResult):
            return NotImplemented
        if (self.position is None) != (other.position is None):
            return False
        if self.position is not None and not np.array_equal(self.position, other.position):
            return False
        return (self.plane_id, self.hit_plane, self.source) == (other.plane_id, other.hit_plane, other.source)

    def to_dict(self) -> dict:
        return {
            "position": None if self.position is None else [float(c) for c in self.position],
            "plane_id": self.plane_id,
            "hit_plane": bool(self.hit_plane),
            "source": self.source,
        }


def intersect_plane(ray: Ray, plane: Plane) -> tuple[float, np.ndarray] | None:
    """
    Intersect `ray` with the bounded rectangle of `plane`.

    Returns (t, collision_point_local) or None. Rays with a local y direction of
    exactly zero are skipped, including rays lying in the plane itself.
    """
    to_local = plane.transform.inverse()
    origin = to_local.transform_point(ray.origin)
    direction = to_local.transform_vector(ray.direction)
    if direction[1] == 0.0:
        return None
    t = -origin[1] / direction[1]
    if not np.isfinite(t) or t <= 0.0:
        return None
    hit = origin + t * direction
    if not plane.contains_local(hit[0], hit[2]):
        return None
    return float(t), hit


def localize(ray: Ray, planes: Iterable[Plane]) -> LocalizationResult:
    """
    Closest in-bounds plane hit along `ray`. Equal distances keep the earlier plane.

    Feature-point fallback is left to the caller.
    """
    best_t: float | None = None
    best_plane: Plane | None = None
    best_local: np.ndarray | None = None
    for plane in planes:
        hit = intersect_plane(ray, plane)
        if hit is None:
            continue
        t, local = hit
        if best_t is None or t < best_t:
            best_t, best_plane, best_local = t, plane, local

    if best_plane is None:
        return LocalizationResult.empty()
    position = best_plane.to_world(best_local)
    return LocalizationResult(position=position, plane_id=best_plane.plane_id, hit_plane=True, source="plane")


# Rays pointing down less steeply than this never reach an infinite ground plane
# at a useful distance.
MIN_GROUND_RAY_DROP = 0.03


def intersect_horizontal_plane(ray: Ray, plane_y: float) -> np.ndarray | None:
    """
    Intersection of `ray` with the unbounded horizontal plane y == plane_y.

    A horizontal ray lying in the plane returns its origin; any other horizontal
    ray and hits behind the origin return None.
    """
    plane_y = float(plane_y)
    o = ray.origin
    d = ray.direction
    if d[1] == 0.0:
        if o[1] == plane_y:
            return o.copy()
        return None
    dist = (plane_y - o[1]) / d[1]
    if dist < 0.0:
        return None
    return o + dist * d


def hit_ground_plane(ray: Ray, plane_y: float, min_drop: float = MIN_GROUND_RAY_DROP) -> LocalizationResult:
    """
    Place along `ray` on an infinite floor at `plane_y`, for objects with no useful
    height of their own. Rays that do not point down by at least `min_drop` miss.
    """
    if ray.direction[1] > -float(min_drop):
        return LocalizationResult.empty()
    hit = intersect_horizontal_plane(ray, plane_y)
    if hit is None:
        return LocalizationResult.empty()
    return LocalizationResult(position=hit, source="ground")
