from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from sightlocate.core.geometry import Ray, as_vec3, normalize


@dataclass(frozen=True)
class FeatureHit:
    position: np.ndarray  # point on the ray closest to the feature
    distance_to_ray_origin: float  # signed, along the ray
    feature: np.ndarray  # the feature point itself
    feature_distance: float  # perpendicular feature-to-ray distance


def _as_points(points: np.ndarray) -> np.ndarray:
    P = np.asarray(points, dtype=np.float64)
    if P.size == 0:
        return np.zeros((0, 3), dtype=np.float64)
    P = P.reshape(-1, 3)
    return P[np.all(np.isfinite(P), axis=1)]


def hit_test(
    ray: Ray,
    points: np.ndarray,
    cone_angle_deg: float,
    min_distance: float = 0.0,
    max_distance: float = math.inf,
    max_results: int = 1,
) -> list[FeatureHit]:
    """
    Feature points inside a cone around `ray`, closest to the ray first.

    A point survives when its along-ray distance is within [min_distance, max_distance]
    and its angle off the ray axis is at most half the cone opening.
    """
    P = _as_points(points)
    if P.shape[0] == 0 or max_results <= 0:
        return []

    max_angle = math.radians(min(float(cone_angle_deg), 360.0) / 2.0)
    o = ray.origin
    d = ray.direction

    v = P - o[None, :]
    perp = np.linalg.norm(np.cross(v, d[None, :]), axis=-1)
    along = v @ d
    norms = np.linalg.norm(v, axis=-1)

    # Points sitting on the ray origin have no direction to measure an angle against.
    keep = norms > 1e-12
    keep &= (along >= min_distance) & (along <= max_distance)
    cos_angle = np.clip(along / np.where(keep, norms, 1.0), -1.0, 1.0)
    keep &= np.arccos(cos_angle) <= max_angle

    idx = np.flatnonzero(keep)
    idx = idx[np.argsort(perp[idx], kind="stable")][: int(max_results)]
    return [
        FeatureHit(
            position=o + along[i] * d,
            distance_to_ray_origin=float(along[i]),
            feature=P[i].copy(),
            feature_distance=float(perp[i]),
        )
        for i in idx
    ]


def hit_test_from_origin(origin: np.ndarray, direction: np.ndarray, points: np.ndarray) -> FeatureHit | None:
    """
    The single feature closest to the line (origin, direction), with no cone or range limits.
    """
    o = as_vec3(origin, "origin")
    d = normalize(as_vec3(direction, "direction"))
    if not np.all(np.isfinite(d)):
        raise ValueError("direction must be non-zero")
    P = _as_points(points)
    if P.shape[0] == 0:
        return None

    v = P - o[None, :]
    perp = np.linalg.norm(np.cross(v, d[None, :]), axis=-1)
    i = int(np.argmin(perp))
    along = float(v[i] @ d)
    return FeatureHit(
        position=o + along * d,
        distance_to_ray_origin=along,
        feature=P[i].copy(),
        feature_distance=float(perp[i]),
    )
