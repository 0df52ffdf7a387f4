from __future__ import annotations

import numpy as np

from sightlocate.core.geometry import Ray, triangulate_midpoint
from sightlocate.errors import ParallelRaysError


def localize_stereo(ray1: Ray, ray2: Ray, *, eps: float = 1e-12) -> np.ndarray:
    """
    Midpoint of the closest-approach segment between two observation rays.

    The rays may come from different (historical) poses. The estimate is purely
    geometric: it is not checked against planes or distance from either camera.
    """
    xyz, _gap = triangulate_midpoint(ray1.origin, ray1.direction, ray2.origin, ray2.direction, eps=eps)
    if not np.all(np.isfinite(xyz)):
        raise ParallelRaysError("rays are parallel; cannot triangulate a closest point")
    return xyz
