from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from sightlocate.core.camera import Viewport


class DetectionParseError(ValueError):
    pass


@dataclass(frozen=True)
class BoundingBox:
    """Box as fractions (0-1) of the submitted image."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class Prediction:
    tag_name: str
    probability: float = 0.0
    tag_id: str | None = None
    bounding_box: BoundingBox | None = None

    @property
    def center(self) -> tuple[float, float] | None:
        b = self.bounding_box
        if b is None:
            return None
        return b.left + b.width / 2.0, b.top + b.height / 2.0

    def center_px(self, viewport: Viewport) -> tuple[float, float] | None:
        c = self.center
        if c is None:
            return None
        return viewport.from_normalized(*c)


@dataclass(frozen=True)
class DetectionResponse:
    predictions: tuple[Prediction, ...] = ()

    @property
    def best_prediction(self) -> Prediction | None:
        best = None
        for p in self.predictions:
            if p.probability > 0.0 and (best is None or p.probability > best.probability):
                best = p
        return best

    def filter_predictions(self, threshold: float = 0.45, max_returns: int = 5) -> "DetectionResponse":
        """Most probable first, drop anything under `threshold`, keep at most `max_returns`."""
        kept = sorted(self.predictions, key=lambda p: p.probability, reverse=True)
        kept = [p for p in kept if p.probability >= threshold]
        return replace(self, predictions=tuple(kept[: max(0, int(max_returns))]))

    def for_label(self, label: str) -> "DetectionResponse":
        return replace(self, predictions=tuple(p for p in self.predictions if p.tag_name == label))


def _parse_box(raw: Any) -> BoundingBox | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise DetectionParseError("boundingBox must be an object")
    try:
        return BoundingBox(
            left=float(raw["left"]),
            top=float(raw["top"]),
            width=float(raw["width"]),
            height=float(raw["height"]),
        )
    except KeyError:
        # A partial box has no usable center.
        return None
    except (TypeError, ValueError) as e:
        raise DetectionParseError(f"invalid boundingBox: {e}") from e


def parse_detection_response(data: dict[str, Any]) -> DetectionResponse:
    """
    Parse a detection-service JSON payload:

      {"predictions": [{"probability": .9, "tagId": "...", "tagName": "cup",
                        "boundingBox": {"left": .1, "top": .2, "width": .3, "height": .4}}]}
    """
    if not isinstance(data, dict):
        raise DetectionParseError("response must be a JSON object")
    raw_preds = data.get("predictions")
    if raw_preds is None:
        raw_preds = []
    if not isinstance(raw_preds, list):
        raise DetectionParseError("predictions must be a list")

    preds = []
    for i, raw in enumerate(raw_preds):
        if not isinstance(raw, dict):
            raise DetectionParseError(f"predictions[{i}] must be an object")
        tag_name = raw.get("tagName")
        if not isinstance(tag_name, str) or not tag_name:
            raise DetectionParseError(f"predictions[{i}].tagName is required")
        prob = raw.get("probability")
        try:
            probability = 0.0 if prob is None else float(prob)
        except (TypeError, ValueError) as e:
            raise DetectionParseError(f"predictions[{i}].probability must be a number") from e
        tag_id = raw.get("tagId")
        preds.append(
            Prediction(
                tag_name=tag_name,
                probability=probability,
                tag_id=None if tag_id is None else str(tag_id),
                bounding_box=_parse_box(raw.get("boundingBox")),
            )
        )
    return DetectionResponse(predictions=tuple(preds))
