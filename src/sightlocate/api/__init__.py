from sightlocate.api.detection import DetectionResponse, Prediction, parse_detection_response
from sightlocate.api.jobs import JobStatus, LocalizationJob, Observation
from sightlocate.api.locator import ObjectLocator
from sightlocate.api.scene_io import Scene, load_scene, save_scene

__all__ = [
    "DetectionResponse",
    "JobStatus",
    "LocalizationJob",
    "ObjectLocator",
    "Observation",
    "Prediction",
    "Scene",
    "load_scene",
    "parse_detection_response",
    "save_scene",
]
