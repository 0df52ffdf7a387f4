from __future__ import annotations

import enum
from dataclasses import dataclass, field

import numpy as np

from sightlocate.core.geometry import Pose
from sightlocate.localize.single import LocalizationResult


class JobStatus(str, enum.Enum):
    WAITING_FOR_INITIAL_RESPONSE = "waiting_for_initial_response"
    WAITING_FOR_POSITION = "waiting_for_position"
    # answered, but the pixel could not be mapped to 3D yet
    WAITING_FOR_ADDITIONAL_RESPONSE = "waiting_for_additional_response"
    PLACED = "placed"
    FAILED = "failed"


@dataclass(frozen=True)
class Observation:
    """A pixel picked in the image that was captured as `image_id`."""

    image_id: str
    pixel: tuple[float, float]


@dataclass
class LocalizationJob:
    """
    One search request for `label`.

    `camera_poses` keeps the pose of every image sent out for detection, so a late
    answer can be turned into a ray from where the camera was, not where it is now.
    """

    label: str
    camera_poses: dict[str, Pose] = field(default_factory=dict)
    observations: list[Observation] = field(default_factory=list)
    status: JobStatus = JobStatus.WAITING_FOR_INITIAL_RESPONSE
    attempts: int = 0
    position: np.ndarray | None = None

    def capture(self, image_id: str, pose: Pose) -> None:
        self.camera_poses[image_id] = pose

    def add_observation(self, image_id: str, pixel: tuple[float, float], pose: Pose | None = None) -> Observation:
        if pose is not None:
            self.capture(image_id, pose)
        if image_id not in self.camera_poses:
            raise KeyError(f"no camera pose captured for image {image_id!r}")
        obs = Observation(image_id=image_id, pixel=(float(pixel[0]), float(pixel[1])))
        self.observations.append(obs)
        return obs

    def record(self, result: LocalizationResult, max_attempts: int) -> JobStatus:
        self.attempts += 1
        if result.found:
            self.position = np.asarray(result.position, dtype=np.float64).copy()
            self.status = JobStatus.PLACED
        elif self.attempts >= max_attempts:
            self.status = JobStatus.FAILED
        else:
            self.status = JobStatus.WAITING_FOR_ADDITIONAL_RESPONSE
        return self.status
