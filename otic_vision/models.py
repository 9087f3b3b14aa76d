"""Value objects shared across the recognition pipeline."""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import numpy as np

from .errors import CorruptTokenError

QUADRANT_NAMES = ("top_left", "top_right", "bottom_left", "bottom_right")


def _channel(value: Any, name: str) -> int:
    channel = int(value)
    if not 0 <= channel <= 255:
        raise ValueError(f"{name} must be 0-255, got {value}")
    return channel


def _finite(value: Any, name: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value}")
    return number


def _parse_timestamp(value: str) -> datetime:
    # fromisoformat only accepts a trailing Z from Python 3.11 on
    if isinstance(value, str) and value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class ColorCluster:
    """A color with the share of sampled pixels it represents."""

    r: int
    g: int
    b: int
    percentage: float

    @property
    def rgb(self) -> Tuple[int, int, int]:
        return self.r, self.g, self.b

    def to_dict(self) -> Dict[str, Any]:
        return {"r": self.r, "g": self.g, "b": self.b, "percentage": self.percentage}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ColorCluster":
        percentage = _finite(data["percentage"], "percentage")
        if not 0.0 <= percentage <= 1.0:
            raise ValueError(f"percentage must be 0-1, got {percentage}")
        return cls(
            r=_channel(data["r"], "r"),
            g=_channel(data["g"], "g"),
            b=_channel(data["b"], "b"),
            percentage=percentage,
        )


@dataclass(frozen=True)
class SpatialDistribution:
    """
    Mean color and sample share of each image quadrant.

    A quadrant is None when no sampled pixel fell inside it.
    """

    top_left: Optional[ColorCluster] = None
    top_right: Optional[ColorCluster] = None
    bottom_left: Optional[ColorCluster] = None
    bottom_right: Optional[ColorCluster] = None

    def items(self) -> Iterator[Tuple[str, Optional[ColorCluster]]]:
        for name in QUADRANT_NAMES:
            yield name, getattr(self, name)

    def present(self) -> Dict[str, ColorCluster]:
        return {name: q for name, q in self.items() if q is not None}

    def to_dict(self) -> Dict[str, Optional[Dict[str, Any]]]:
        return {name: q.to_dict() if q is not None else None
                for name, q in self.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SpatialDistribution":
        quadrants = {}
        for name in QUADRANT_NAMES:
            entry = data.get(name)
            quadrants[name] = ColorCluster.from_dict(entry) if entry is not None else None
        return cls(**quadrants)


@dataclass(frozen=True)
class ImageFeatures:
    """Scalar image statistics."""

    brightness: float
    contrast: float
    color_temperature: float
    aspect_ratio: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "brightness": self.brightness,
            "contrast": self.contrast,
            "color_temperature": self.color_temperature,
            "aspect_ratio": self.aspect_ratio,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImageFeatures":
        return cls(
            brightness=_finite(data["brightness"], "brightness"),
            contrast=_finite(data["contrast"], "contrast"),
            color_temperature=_finite(data["color_temperature"], "color_temperature"),
            aspect_ratio=_finite(data["aspect_ratio"], "aspect_ratio"),
        )


@dataclass(frozen=True, eq=False)
class RGBToken:
    """
    Color fingerprint of one image.

    Immutable: the histogram is stored as a read-only array, and any
    change to a product's appearance means building a new token.
    """

    histogram: np.ndarray
    dominant_colors: Tuple[ColorCluster, ...]
    spatial_distribution: SpatialDistribution
    image_features: ImageFeatures
    token_hash: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        histogram = np.array(self.histogram, dtype=np.float64).reshape(-1)
        histogram.setflags(write=False)
        object.__setattr__(self, "histogram", histogram)
        object.__setattr__(self, "dominant_colors", tuple(self.dominant_colors))

    @property
    def bins(self) -> int:
        return int(round(len(self.histogram) ** (1.0 / 3.0)))

    @property
    def is_degenerate(self) -> bool:
        """True when the token carries no color signal (no opaque pixels)."""
        return not np.any(self.histogram)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "histogram": self.histogram.tolist(),
            "dominant_colors": [c.to_dict() for c in self.dominant_colors],
            "spatial_distribution": self.spatial_distribution.to_dict(),
            "image_features": self.image_features.to_dict(),
            "token_hash": self.token_hash,
            "generated_at": self.generated_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RGBToken":
        """
        Rebuild a token from its dict form.

        Raises:
            CorruptTokenError: On missing fields, wrong types or values
                outside their documented ranges.
        """
        if not isinstance(data, Mapping):
            raise CorruptTokenError(f"Token must be a mapping, got {type(data).__name__}")

        try:
            histogram = np.asarray(data["histogram"], dtype=np.float64)
            if histogram.ndim != 1 or histogram.size == 0:
                raise ValueError("histogram must be a non-empty flat list")
            bins = int(round(histogram.size ** (1.0 / 3.0)))
            if bins ** 3 != histogram.size:
                raise ValueError(f"histogram length {histogram.size} is not a cube")
            if not np.all(np.isfinite(histogram)) or np.any(histogram < 0):
                raise ValueError("histogram values must be finite and non-negative")

            dominant_colors = tuple(
                ColorCluster.from_dict(c) for c in data["dominant_colors"]
            )
            spatial = SpatialDistribution.from_dict(data["spatial_distribution"])
            features = ImageFeatures.from_dict(data["image_features"])

            token_hash = data["token_hash"]
            if not isinstance(token_hash, str):
                raise ValueError("token_hash must be a string")

            generated_at = _parse_timestamp(data["generated_at"])
        except CorruptTokenError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError,
                OverflowError, RecursionError) as e:
            raise CorruptTokenError(f"Invalid token: {e}") from e

        return cls(
            histogram=histogram,
            dominant_colors=dominant_colors,
            spatial_distribution=spatial,
            image_features=features,
            token_hash=token_hash,
            generated_at=generated_at,
        )

    @classmethod
    def from_json(cls, payload: str) -> "RGBToken":
        try:
            data = json.loads(payload)
        except (TypeError, ValueError, RecursionError) as e:
            raise CorruptTokenError(f"Token is not valid JSON: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def coerce(cls, value: Any) -> "RGBToken":
        """Accept an RGBToken, its dict form, or its JSON form."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls.from_dict(value)
        if isinstance(value, (str, bytes, bytearray)):
            return cls.from_json(value)
        raise CorruptTokenError(f"Unsupported token type {type(value).__name__}")
