from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from sightlocate.api.jobs import Observation
from sightlocate.core.camera import CameraView, PinholeProjection, Viewport
from sightlocate.core.geometry import Pose
from sightlocate.core.planes import Plane

SCHEMA_VERSION = "sightlocate.scene.v0"


@dataclass
class Scene:
    """
    A frozen moment of a tracking session: camera, planes, feature points, and the
    observations (with their captured poses) still waiting to be localized.
    """

    view: CameraView
    label: str = ""
    planes: list[Plane] = field(default_factory=list)
    poses: dict[str, Pose] = field(default_factory=dict)
    observations: list[Observation] = field(default_factory=list)
    feature_points: np.ndarray | None = None  # (N,3)


def _to_float_matrix(x: Any, shape: tuple[int, ...]) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    x = x.reshape(shape)
    if not np.all(np.isfinite(x)):
        raise ValueError("non-finite values")
    return x


def _pose_from_json(d: dict[str, Any]) -> Pose:
    if "matrix" in d:
        return Pose.from_matrix(_to_float_matrix(d["matrix"], (4, 4)))
    if "quaternion_wxyz" in d:
        return Pose.from_quaternion(
            _to_float_matrix(d["quaternion_wxyz"], (4,)),
            _to_float_matrix(d.get("position", [0.0, 0.0, 0.0]), (3,)),
        )
    raise ValueError("pose needs either 'matrix' or 'quaternion_wxyz'")


def _pose_to_json(pose: Pose) -> dict[str, Any]:
    return {"matrix": np.asarray(pose.matrix, dtype=np.float64).tolist()}


def _projection_from_json(d: dict[str, Any], viewport: Viewport) -> PinholeProjection:
    z_near = float(d.get("z_near", 0.001))
    z_far = float(d.get("z_far", 1000.0))
    if "yfov_deg" in d:
        return PinholeProjection.from_fov(float(d["yfov_deg"]), viewport, z_near=z_near, z_far=z_far)
    return PinholeProjection(
        fx=float(d["fx"]),
        fy=float(d["fy"]),
        cx=float(d["cx"]),
        cy=float(d["cy"]),
        z_near=z_near,
        z_far=z_far,
    )


def _plane_from_json(d: dict[str, Any]) -> Plane:
    extent = _to_float_matrix(d["extent"], (2,))
    return Plane(
        plane_id=str(d["id"]),
        transform=_pose_from_json(d["transform"]),
        extent_x=float(extent[0]),
        extent_z=float(extent[1]),
        center=_to_float_matrix(d.get("center", [0.0, 0.0, 0.0]), (3,)),
        classification=d.get("classification", "none"),
    )


def save_scene(scene_dir: Path, scene: Scene) -> Path:
    """
    Save a scene into a directory:

      scene.json (+ features.npz when the scene has feature points)
    """
    scene_dir = Path(scene_dir)
    scene_dir.mkdir(parents=True, exist_ok=True)

    view = scene.view
    proj = view.projection
    meta: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "label": scene.label,
        "viewport": {"width_px": int(view.viewport.width_px), "height_px": int(view.viewport.height_px)},
        "projection": {
            "fx": float(proj.fx),
            "fy": float(proj.fy),
            "cx": float(proj.cx),
            "cy": float(proj.cy),
            "z_near": float(proj.z_near),
            "z_far": float(proj.z_far),
        },
        "current_pose": None if view.current_pose is None else _pose_to_json(view.current_pose),
        "poses": {k: _pose_to_json(p) for k, p in scene.poses.items()},
        "planes": [
            {
                "id": p.plane_id,
                "transform": _pose_to_json(p.transform),
                "center": np.asarray(p.center, dtype=np.float64).tolist(),
                "extent": [float(p.extent_x), float(p.extent_z)],
                "classification": p.classification.value,
            }
            for p in scene.planes
        ],
        "observations": [{"image_id": o.image_id, "pixel": list(o.pixel)} for o in scene.observations],
    }

    if scene.feature_points is not None:
        features_path = scene_dir / "features.npz"
        np.savez_compressed(features_path, points=np.asarray(scene.feature_points, dtype=np.float64).reshape(-1, 3))
        meta["features"] = {"format": "npz", "path": features_path.name, "key": "points"}

    json_path = scene_dir / "scene.json"
    json_path.write_text(json.dumps(meta, indent=2, sort_keys=True), encoding="utf-8")
    return json_path


def load_scene(scene_dir: Path) -> Scene:
    scene_dir = Path(scene_dir)
    json_path = scene_dir / "scene.json" if scene_dir.is_dir() else scene_dir
    scene_dir = json_path.parent
    meta = json.loads(json_path.read_text(encoding="utf-8"))
    if str(meta.get("schema_version")) != SCHEMA_VERSION:
        raise ValueError("unsupported scene schema")

    vp = meta["viewport"]
    viewport = Viewport(width_px=int(vp["width_px"]), height_px=int(vp["height_px"]))
    projection = _projection_from_json(meta["projection"], viewport)
    current = meta.get("current_pose")
    view = CameraView(
        viewport=viewport,
        projection=projection,
        current_pose=None if current is None else _pose_from_json(current),
    )

    poses = {str(k): _pose_from_json(v) for k, v in (meta.get("poses") or {}).items()}
    observations = []
    for o in meta.get("observations") or []:
        px = _to_float_matrix(o["pixel"], (2,))
        observations.append(Observation(image_id=str(o["image_id"]), pixel=(float(px[0]), float(px[1]))))
        if observations[-1].image_id not in poses:
            raise ValueError(f"observation references unknown pose {observations[-1].image_id!r}")

    feature_points = None
    features = meta.get("features")
    if features is not None:
        with np.load(str(scene_dir / str(features["path"]))) as w:
            feature_points = np.asarray(w[str(features.get("key", "points"))], dtype=np.float64).reshape(-1, 3)

    return Scene(
        view=view,
        label=str(meta.get("label", "")),
        planes=[_plane_from_json(p) for p in meta.get("planes") or []],
        poses=poses,
        observations=observations,
        feature_points=feature_points,
    )
