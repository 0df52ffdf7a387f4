from __future__ import annotations

import enum
from dataclasses import dataclass, field

import numpy as np

from sightlocate.core.geometry import Pose, as_vec3


class PlaneClassification(str, enum.Enum):
    WALL = "wall"
    FLOOR = "floor"
    CEILING = "ceiling"
    TABLE = "table"
    SEAT = "seat"
    NONE = "none"

    @property
    def description(self) -> str:
        return "Unknown" if self is PlaneClassification.NONE else self.value.capitalize()


@dataclass(frozen=True)
class Plane:
    """
    Bounded planar surface reported by the tracker.

    `transform` maps the plane's local frame to world; the local +Y axis is the
    surface normal. `center` is expressed in the local frame and the rectangle
    spans `extent_x` x `extent_z` around it.
    """

    plane_id: str
    transform: Pose
    extent_x: float
    extent_z: float
    center: np.ndarray = field(default_factory=lambda: np.zeros((3,), dtype=np.float64))
    classification: PlaneClassification = PlaneClassification.NONE

    def __post_init__(self) -> None:
        if not isinstance(self.transform, Pose):
            object.__setattr__(self, "transform", Pose.from_matrix(self.transform))
        if not (self.extent_x >= 0 and self.extent_z >= 0):
            raise ValueError("plane extents must be >= 0")
        c = as_vec3(self.center, "plane center")
        c.setflags(write=False)
        object.__setattr__(self, "center", c)
        object.__setattr__(self, "extent_x", float(self.extent_x))
        object.__setattr__(self, "extent_z", float(self.extent_z))
        object.__setattr__(self, "classification", PlaneClassification(self.classification))

    @classmethod
    def horizontal(
        cls,
        plane_id: str,
        center_world: np.ndarray,
        extent_x: float,
        extent_z: float,
        classification: PlaneClassification = PlaneClassification.NONE,
    ) -> "Plane":
        """Axis-aligned upward-facing plane whose anchor sits at `center_world`."""
        return cls(
            plane_id=plane_id,
            transform=Pose.from_rotation_translation(np.eye(3), center_world),
            extent_x=extent_x,
            extent_z=extent_z,
            classification=classification,
        )

    @property
    def orientation_basis(self) -> np.ndarray:
        return self.transform.rotation

    @property
    def normal(self) -> np.ndarray:
        return self.transform.rotation[:, 1]

    @property
    def world_center(self) -> np.ndarray:
        return self.transform.transform_point(self.center)

    def to_local(self, p_world: np.ndarray) -> np.ndarray:
        return self.transform.inverse().transform_point(p_world)

    def to_world(self, p_local: np.ndarray) -> np.ndarray:
        return self.transform.transform_point(p_local)

    def contains_local(self, x: float, z: float, tolerance: float = 0.0) -> bool:
        """
        Footprint test in the local frame. `tolerance` grows each side by that
        fraction of the extent (0.1 = 10% on every edge).
        """
        half_x = self.extent_x / 2.0 + self.extent_x * tolerance
        half_z = self.extent_z / 2.0 + self.extent_z * tolerance
        return abs(x - self.center[0]) <= half_x and abs(z - self.center[2]) <= half_z
