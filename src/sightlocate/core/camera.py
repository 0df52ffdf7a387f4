from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from sightlocate.core.geometry import Pose, Ray

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewport:
    width_px: int
    height_px: int

    def __post_init__(self) -> None:
        if int(self.width_px) <= 0 or int(self.height_px) <= 0:
            raise ValueError("viewport width/height must be > 0")

    @property
    def aspect(self) -> float:
        return float(self.width_px) / float(self.height_px)

    def from_normalized(self, x: float, y: float) -> tuple[float, float]:
        """Scale 0-1 fractions (e.g. a detection box center) to viewport pixels."""
        return float(x) * self.width_px, float(y) * self.height_px


@dataclass(frozen=True)
class PinholeProjection:
    """
    Renderer projection built from pinhole intrinsics expressed in viewport pixels.

    Convention: camera looks down its local -Z, +Y up; pixel origin top-left, v down.
    """

    fx: float
    fy: float
    cx: float
    cy: float
    z_near: float = 0.001
    z_far: float = 1000.0

    def __post_init__(self) -> None:
        if self.fx <= 0 or self.fy <= 0:
            raise ValueError("fx/fy must be > 0")
        if not (0 < self.z_near < self.z_far):
            raise ValueError("clipping planes must satisfy 0 < z_near < z_far")

    @classmethod
    def from_fov(
        cls, yfov_deg: float, viewport: Viewport, z_near: float = 0.001, z_far: float = 1000.0
    ) -> "PinholeProjection":
        if not (0.0 < yfov_deg < 180.0):
            raise ValueError("yfov_deg must be in (0, 180)")
        f = 0.5 * viewport.height_px / math.tan(math.radians(yfov_deg) / 2.0)
        return cls(
            fx=f,
            fy=f,
            cx=viewport.width_px / 2.0,
            cy=viewport.height_px / 2.0,
            z_near=z_near,
            z_far=z_far,
        )

    def projection_matrix(self, viewport: Viewport) -> np.ndarray:
        w = float(viewport.width_px)
        h = float(viewport.height_px)
        n = float(self.z_near)
        f = float(self.z_far)
        P = np.zeros((4, 4), dtype=np.float64)
        P[0, 0] = 2.0 * self.fx / w
        P[0, 2] = 1.0 - 2.0 * self.cx / w
        P[1, 1] = 2.0 * self.fy / h
        P[1, 2] = 2.0 * self.cy / h - 1.0
        P[2, 2] = -(f + n) / (f - n)
        P[2, 3] = -2.0 * f * n / (f - n)
        P[3, 2] = -1.0
        return P

    def unproject(self, pixel: np.ndarray, depth: float, viewport: Viewport, camera_pose: Pose) -> np.ndarray:
        """
        Pixel (u, v) + normalized depth (0 = near plane, 1 = far plane) -> world point.
        """
        u, v = (float(c) for c in np.asarray(pixel, dtype=np.float64).reshape(2))
        ndc = np.array(
            [
                2.0 * u / viewport.width_px - 1.0,
                1.0 - 2.0 * v / viewport.height_px,
                2.0 * float(depth) - 1.0,
                1.0,
            ],
            dtype=np.float64,
        )
        view = camera_pose.inverse().matrix
        inv = np.linalg.inv(self.projection_matrix(viewport) @ view)
        X = inv @ ndc
        return X[:3] / X[3]


@dataclass(frozen=True)
class CameraView:
    """
    What the renderer knows right now: viewport, projection and the live camera pose.

    `current_pose` is None until the tracking session has delivered a frame.
    """

    viewport: Viewport
    projection: PinholeProjection
    current_pose: Pose | None = None

    def with_pose(self, pose: Pose | None) -> "CameraView":
        return CameraView(viewport=self.viewport, projection=self.projection, current_pose=pose)

    def unproject_point(self, pixel: np.ndarray, depth: float, override_pose: Pose | None = None) -> np.ndarray | None:
        """
        Unproject with the live pose, then re-express the point for `override_pose`.

        The world point is mapped back into the live camera frame and out again through
        the override pose: X' = T_override @ inv(T_current) @ X.
        """
        if self.current_pose is None:
            return None
        X = self.projection.unproject(pixel, depth, self.viewport, self.current_pose)
        if override_pose is None:
            return X
        time_transform = override_pose.compose(self.current_pose.inverse())
        return time_transform.transform_point(X)


def build_ray(pixel: np.ndarray, view: CameraView, pose: Pose | None = None) -> Ray | None:
    """
    Ray through `pixel` for the camera at `pose` (defaults to the live pose).

    Returns None when the view has no live pose.
    """
    if view.current_pose is None:
        logger.debug("no active pose, cannot build a ray for pixel %s", pixel)
        return None
    far_point = view.unproject_point(pixel, 1.0, override_pose=pose)
    if pose is None:
        pose = view.current_pose
    origin = pose.translation
    return Ray(origin=origin, direction=far_point - origin)
