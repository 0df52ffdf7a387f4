from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from sightlocate.api.detection import parse_detection_response
from sightlocate.api.jobs import LocalizationJob
from sightlocate.api.locator import ObjectLocator
from sightlocate.api.scene_io import load_scene
from sightlocate.config import LocatorConfig, load_locator_config
from sightlocate.core.camera import Viewport
from sightlocate.core.registry import PlaneRegistry
from sightlocate.errors import ParallelRaysError

logger = logging.getLogger(__name__)


def run_localize(
    scene_dir: Path,
    *,
    config: LocatorConfig,
    pixel: tuple[float, float] | None = None,
    stereo: bool = False,
    use_features: bool = True,
    ground_y: float | None = None,
) -> dict:
    scene = load_scene(scene_dir)
    registry = PlaneRegistry()
    for plane in scene.planes:
        registry.add(plane)
    locator = ObjectLocator(registry, config)
    points = scene.feature_points if use_features else None

    if pixel is not None:
        result = locator.locate(pixel, scene.view, feature_points=points, ground_y=ground_y)
        camera_pose = scene.view.current_pose
    else:
        if not scene.observations:
            raise ValueError("scene has no observations; pass --pixel")
        job = LocalizationJob(label=scene.label, camera_poses=dict(scene.poses))
        observations = scene.observations if stereo else scene.observations[-1:]
        job.observations.extend(observations)
        result = locator.locate_job(job, scene.view, feature_points=points, ground_y=ground_y)
        camera_pose = scene.poses[observations[-1].image_id]

    out = {"label": scene.label, **result.to_dict()}
    if camera_pose is not None:
        placed = locator.place(scene.label, result, camera_pose)
        if placed is not None:
            out["placed_position"] = [float(c) for c in placed.position]
    return out


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="sightlocate")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    loc = sub.add_parser("localize", help="Resolve a scene's observations (or one pixel) to a world position.")
    loc.add_argument("scene", type=Path, help="Scene directory (scene.json) or scene JSON file.")
    loc.add_argument("--config", type=Path, default=None, help="Locator config JSON.")
    loc.add_argument("--pixel", type=float, nargs=2, default=None, metavar=("U", "V"), help="Pixel in the live view.")
    loc.add_argument("--stereo", action="store_true", help="Triangulate the two most recent observations.")
    loc.add_argument("--no-features", action="store_true", help="Disable the feature-point fallback.")
    loc.add_argument("--ground-y", type=float, default=None, help="Height of an infinite floor to fall back on.")

    val = sub.add_parser("validate-scene", help="Load a scene and report what it contains.")
    val.add_argument("scene", type=Path)

    det = sub.add_parser("detection-pixel", help="Best detection box center, in viewport pixels.")
    det.add_argument("response", type=Path, help="Detection service JSON response.")
    det.add_argument("--width", type=int, required=True)
    det.add_argument("--height", type=int, required=True)
    det.add_argument("--label", type=str, default=None)
    det.add_argument("--config", type=Path, default=None)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    config = LocatorConfig()
    if getattr(args, "config", None) is not None:
        config = load_locator_config(args.config)

    if args.cmd == "localize":
        try:
            out = run_localize(
                args.scene,
                config=config,
                pixel=tuple(args.pixel) if args.pixel is not None else None,
                stereo=args.stereo,
                use_features=not args.no_features,
                ground_y=args.ground_y,
            )
        except ParallelRaysError as e:
            logger.error("%s", e)
            return 2
        print(json.dumps(out, indent=2))
        return 0 if out["position"] is not None else 1

    if args.cmd == "validate-scene":
        scene = load_scene(args.scene)
        n_points = 0 if scene.feature_points is None else int(scene.feature_points.shape[0])
        print(
            f"label={scene.label!r} planes={len(scene.planes)} poses={len(scene.poses)} "
            f"observations={len(scene.observations)} feature_points={n_points} "
            f"live_pose={'yes' if scene.view.current_pose is not None else 'no'}"
        )
        return 0

    if args.cmd == "detection-pixel":
        response = parse_detection_response(json.loads(args.response.read_text(encoding="utf-8")))
        if args.label:
            response = response.for_label(args.label)
        response = response.filter_predictions(config.detection_threshold, config.detection_max_returns)
        best = response.best_prediction
        center = None if best is None else best.center_px(Viewport(args.width, args.height))
        if center is None:
            logger.warning("no usable prediction in %s", args.response)
            return 1
        print(json.dumps({"tag_name": best.tag_name, "probability": best.probability, "pixel": list(center)}))
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")
