from __future__ import annotations

import logging
from collections.abc import Mapping

import numpy as np

from sightlocate.api.jobs import JobStatus, LocalizationJob, Observation
from sightlocate.config import LocatorConfig
from sightlocate.core.camera import CameraView, build_ray
from sightlocate.core.geometry import Pose, Ray
from sightlocate.core.planes import Plane
from sightlocate.core.registry import PlaneRegistry
from sightlocate.errors import ParallelRaysError
from sightlocate.localize.features import hit_test
from sightlocate.localize.placement import PlacedObject, PlacedObjectStore, SnapEvent
from sightlocate.localize.single import LocalizationResult, hit_ground_plane, localize
from sightlocate.localize.stereo import localize_stereo

logger = logging.getLogger(__name__)


class ObjectLocator:
    """
    Pixel -> world position, in two explicit steps: bounded planes first, then (when
    enabled and a point cloud is supplied) the feature points along the same ray.
    An infinite floor height can be given as a last resort.

    Poses are plain values passed per call; the locator keeps none of its own.
    Placed objects live in `placements`, clamped and snapped with the config values.
    """

    def __init__(self, registry: PlaneRegistry, config: LocatorConfig | None = None) -> None:
        self.registry = registry
        self.config = config or LocatorConfig()
        self.placements = PlacedObjectStore(max_distance=self.config.max_distance_m)

    def locate_on_planes(self, ray: Ray) -> LocalizationResult:
        return localize(ray, self.registry.snapshot())

    def locate_on_features(self, ray: Ray, feature_points: np.ndarray) -> LocalizationResult:
        cfg = self.config
        hits = hit_test(
            ray,
            feature_points,
            cone_angle_deg=cfg.feature_cone_deg,
            min_distance=cfg.feature_min_distance_m,
            max_distance=cfg.feature_max_distance_m,
            max_results=cfg.feature_max_results,
        )
        if not hits:
            return LocalizationResult.empty()
        return LocalizationResult(position=hits[0].position, source="feature")

    def locate_on_ground(self, ray: Ray, ground_y: float) -> LocalizationResult:
        return hit_ground_plane(ray, ground_y)

    def locate(
        self,
        pixel: tuple[float, float],
        view: CameraView,
        pose: Pose | None = None,
        feature_points: np.ndarray | None = None,
        ground_y: float | None = None,
    ) -> LocalizationResult:
        ray = build_ray(pixel, view, pose)
        if ray is None:
            return LocalizationResult.empty()
        result = self.locate_on_planes(ray)
        if result.found:
            logger.debug("pixel %s hit plane %s", pixel, result.plane_id)
            return result
        if self.config.feature_fallback and feature_points is not None:
            result = self.locate_on_features(ray, feature_points)
            if result.found:
                logger.debug("pixel %s resolved on feature points", pixel)
                return result
        if ground_y is not None:
            result = self.locate_on_ground(ray, ground_y)
            if result.found:
                logger.debug("pixel %s resolved on the floor at y=%.3f", pixel, ground_y)
                return result
        logger.debug("pixel %s: no plane or feature hit", pixel)
        return LocalizationResult.empty()

    def locate_stereo(
        self,
        first: Observation,
        second: Observation,
        poses: Mapping[str, Pose],
        view: CameraView,
    ) -> LocalizationResult:
        """
        Triangulate two observations of the same object, each against the pose of
        the image it was picked in. Raises ParallelRaysError for parallel rays.
        """
        ray1 = build_ray(first.pixel, view, poses[first.image_id])
        ray2 = build_ray(second.pixel, view, poses[second.image_id])
        if ray1 is None or ray2 is None:
            return LocalizationResult.empty()
        xyz = localize_stereo(ray1, ray2, eps=self.config.parallel_epsilon)
        return LocalizationResult(position=xyz, source="stereo")

    def locate_job(
        self,
        job: LocalizationJob,
        view: CameraView,
        feature_points: np.ndarray | None = None,
        ground_y: float | None = None,
    ) -> LocalizationResult:
        """
        Localize a job from its observations: the two most recent ones are triangulated,
        a single one goes through the plane / feature path. The job status is updated,
        also when the stereo rays turn out parallel (the error is re-raised).
        """
        if not job.observations:
            return LocalizationResult.empty()
        if len(job.observations) >= 2:
            first, second = job.observations[-2:]
            try:
                result = self.locate_stereo(first, second, job.camera_poses, view)
            except ParallelRaysError:
                self._record(job, LocalizationResult.empty())
                raise
        else:
            obs = job.observations[-1]
            result = self.locate(obs.pixel, view, job.camera_poses[obs.image_id], feature_points, ground_y)
        self._record(job, result)
        return result

    def _record(self, job: LocalizationJob, result: LocalizationResult) -> None:
        status = job.record(result, self.config.max_attempts)
        if status is JobStatus.FAILED:
            logger.warning("giving up on %r after %d attempt(s)", job.label, job.attempts)
        else:
            logger.info("job %r is now %s", job.label, status.value)

    def place(self, label: str, result: LocalizationResult, camera_pose: Pose) -> PlacedObject | None:
        """Put a found result into `placements`, at most `max_distance_m` from the camera."""
        if not result.found:
            return None
        return self.placements.place(label, result.position, camera_pose, self.config.max_distance_m)

    def add_plane(self, plane: Plane) -> list[SnapEvent]:
        """Register a newly tracked plane and move placed objects hovering just above it."""
        self.registry.add(plane)
        cfg = self.config
        return self.placements.snap_onto_plane(
            plane,
            tolerance_fraction=cfg.snap_tolerance_fraction,
            vertical_allowance=cfg.snap_vertical_allowance_m,
            epsilon=cfg.snap_epsilon_m,
        )
