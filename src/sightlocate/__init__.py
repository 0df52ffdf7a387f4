from sightlocate import config
from sightlocate.api import LocalizationJob, ObjectLocator, load_scene, save_scene
from sightlocate.core.camera import CameraView, PinholeProjection, Viewport, build_ray
from sightlocate.core.geometry import Pose, Ray
from sightlocate.core.planes import Plane
from sightlocate.core.registry import PlaneRegistry
from sightlocate.errors import LocalizationError, ParallelRaysError
from sightlocate.localize.features import FeatureHit, hit_test, hit_test_from_origin
from sightlocate.localize.placement import PlacedObject, PlacedObjectStore, resolve_placement, snap_to_plane
from sightlocate.localize.single import LocalizationResult, hit_ground_plane, localize
from sightlocate.localize.stereo import localize_stereo

__all__ = [
    "config",
    "CameraView",
    "FeatureHit",
    "LocalizationError",
    "LocalizationJob",
    "LocalizationResult",
    "ObjectLocator",
    "ParallelRaysError",
    "PinholeProjection",
    "PlacedObject",
    "PlacedObjectStore",
    "Plane",
    "PlaneRegistry",
    "Pose",
    "Ray",
    "Viewport",
    "build_ray",
    "hit_ground_plane",
    "hit_test",
    "hit_test_from_origin",
    "load_scene",
    "localize",
    "localize_stereo",
    "resolve_placement",
    "save_scene",
    "snap_to_plane",
]
