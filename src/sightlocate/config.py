from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

SCHEMA_VERSION = "sightlocate.config.v0"


class ConfigValidationError(ValueError):
    pass


@dataclass(frozen=True)
class LocatorConfig:
    max_distance_m: float = 10.0
    feature_fallback: bool = True
    feature_cone_deg: float = 10.0
    feature_min_distance_m: float = 0.0
    feature_max_distance_m: float = math.inf
    feature_max_results: int = 1
    snap_tolerance_fraction: float = 0.1
    snap_vertical_allowance_m: float = 0.05
    snap_epsilon_m: float = 0.001
    parallel_epsilon: float = 1e-12
    detection_threshold: float = 0.45
    detection_max_returns: int = 5
    max_attempts: int = 3

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"schema_version": SCHEMA_VERSION, **asdict(self)}
        if math.isinf(self.feature_max_distance_m):
            d["feature_max_distance_m"] = None
        return d


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigValidationError(msg)


def load_locator_config(path: Path) -> LocatorConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_locator_config(data)


def parse_locator_config(data: dict[str, Any]) -> LocatorConfig:
    _require(isinstance(data, dict), "config must be a JSON object")
    schema_version = data.get("schema_version", SCHEMA_VERSION)
    _require(schema_version == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")

    defaults = LocatorConfig()
    known = set(asdict(defaults)) | {"schema_version"}
    unknown = sorted(set(data) - known)
    _require(not unknown, f"unknown config keys: {unknown}")

    max_distance = float(data.get("max_distance_m", defaults.max_distance_m))
    _require(max_distance > 0.0, "max_distance_m must be > 0")

    cone = float(data.get("feature_cone_deg", defaults.feature_cone_deg))
    _require(0.0 < cone <= 360.0, "feature_cone_deg must be in (0, 360]")

    fmin = float(data.get("feature_min_distance_m", defaults.feature_min_distance_m))
    fmax_raw = data.get("feature_max_distance_m")
    fmax = math.inf if fmax_raw is None else float(fmax_raw)
    _require(fmin >= 0.0, "feature_min_distance_m must be >= 0")
    _require(fmax > fmin, "feature_max_distance_m must be > feature_min_distance_m")

    fres = int(data.get("feature_max_results", defaults.feature_max_results))
    _require(fres >= 1, "feature_max_results must be >= 1")

    tol = float(data.get("snap_tolerance_fraction", defaults.snap_tolerance_fraction))
    allowance = float(data.get("snap_vertical_allowance_m", defaults.snap_vertical_allowance_m))
    eps = float(data.get("snap_epsilon_m", defaults.snap_epsilon_m))
    _require(tol >= 0.0, "snap_tolerance_fraction must be >= 0")
    _require(0.0 <= eps < allowance, "snap_epsilon_m must be >= 0 and < snap_vertical_allowance_m")

    par_eps = float(data.get("parallel_epsilon", defaults.parallel_epsilon))
    _require(par_eps > 0.0, "parallel_epsilon must be > 0")

    threshold = float(data.get("detection_threshold", defaults.detection_threshold))
    _require(0.0 <= threshold <= 1.0, "detection_threshold must be in [0, 1]")
    max_returns = int(data.get("detection_max_returns", defaults.detection_max_returns))
    _require(max_returns >= 1, "detection_max_returns must be >= 1")

    attempts = int(data.get("max_attempts", defaults.max_attempts))
    _require(attempts >= 1, "max_attempts must be >= 1")

    return LocatorConfig(
        max_distance_m=max_distance,
        feature_fallback=bool(data.get("feature_fallback", defaults.feature_fallback)),
        feature_cone_deg=cone,
        feature_min_distance_m=fmin,
        feature_max_distance_m=fmax,
        feature_max_results=fres,
        snap_tolerance_fraction=tol,
        snap_vertical_allowance_m=allowance,
        snap_epsilon_m=eps,
        parallel_epsilon=par_eps,
        detection_threshold=threshold,
        detection_max_returns=max_returns,
        max_attempts=attempts,
    )
