"""Per-feature shape configuration for meteorite feed layers.

The GeoJSON loader calls ``configure_shape(geometry_type, properties)`` once
per feature and stores the result on the feature:

- Point / MultiPoint: white-dot placemark, labelled from the record name,
  scaled by ``POP_MAX`` when the record carries one.
- LineString / MultiLineString: 2px outline tinted from the interior color.
- Polygon / MultiPolygon: random pastel fill with a darker outline.
"""

from __future__ import annotations

import math
import random
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Mapping

from globe_engine.layers.layer import LINE_TYPES, POINT_TYPES, POLYGON_TYPES


@dataclass(frozen=True)
class Color:
    """RGBA color with channels in [0, 1]."""
    red: float
    green: float
    blue: float
    alpha: float = 1.0

    def as_list(self) -> list[float]:
        return [self.red, self.green, self.blue, self.alpha]


WHITE = Color(1.0, 1.0, 1.0, 1.0)
BLACK = Color(0.0, 0.0, 0.0, 1.0)

NAME_KEYS = ("name", "Name", "NAME")
POPULATION_KEY = "POP_MAX"


@dataclass
class PlacemarkAttributes:
    """Marker style for point features."""
    image_scale: float = 0.05
    image_color: Color = WHITE
    image_source: str = "images/white-dot.png"
    label_offset: tuple[float, float] = (0.5, 1.5)  # fractions of the image

    def copy(self) -> PlacemarkAttributes:
        return replace(self)


@dataclass
class ShapeAttributes:
    """Outline/fill style for line and polygon features."""
    draw_interior: bool = True
    draw_outline: bool = True
    interior_color: Color = WHITE
    outline_color: Color = BLACK
    outline_width: float = 1.0


def _plain(value: Any) -> Any:
    """Colors (already dicts after asdict) and offsets become flat lists."""
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, tuple):
        return list(value)
    return value


@dataclass
class ShapeConfiguration:
    """Style for one feature in one render pass. Empty for unknown geometry."""
    attributes: PlacemarkAttributes | ShapeAttributes | None = None
    name: str | None = None

    def to_dict(self) -> dict:
        if self.attributes is None:
            return {}
        result: dict[str, Any] = {
            "kind": "placemark" if isinstance(self.attributes, PlacemarkAttributes) else "shape",
            "attributes": {
                key: _plain(value) for key, value in asdict(self.attributes).items()
            },
        }
        if self.name is not None:
            result["name"] = self.name
        return result


StyleCallback = Callable[[str, Mapping[str, Any]], ShapeConfiguration]

DEFAULT_PLACEMARK = PlacemarkAttributes()


def display_name(properties: Mapping[str, Any] | None) -> str | None:
    """Look up a record's display name without caring about key case.

    ``name`` wins over ``Name`` which wins over ``NAME``; after those any
    other casing (``nAmE``) is accepted. Empty values count as missing.
    """
    if not properties:
        return None
    for key in NAME_KEYS:
        value = properties.get(key)
        if value:
            return str(value)
    for key, value in properties.items():
        if isinstance(key, str) and key.lower() == "name" and value:
            return str(value)
    return None


def placemark_scale(properties: Mapping[str, Any] | None, default: float) -> float:
    """Marker scale: ``0.01 * ln(POP_MAX)`` when present, else ``default``."""
    if not properties:
        return default
    population = properties.get(POPULATION_KEY)
    if not population:
        return default
    try:
        return 0.01 * math.log(float(population))
    except (TypeError, ValueError):
        return default


def configure_shape(
    geometry_type: str,
    properties: Mapping[str, Any] | None,
    rng: random.Random | None = None,
    placemark: PlacemarkAttributes = DEFAULT_PLACEMARK,
) -> ShapeConfiguration:
    """Map a geometry kind and property bag to a shape configuration.

    Args:
        geometry_type: GeoJSON geometry type name.
        properties: The feature's property bag (may be None).
        rng: Source of randomness for polygon fills; module ``random`` if None.
        placemark: Template copied for point features.

    Returns:
        A fresh ShapeConfiguration; never shared between calls.
    """
    rng = rng or random
    config = ShapeConfiguration()

    if geometry_type in POINT_TYPES:
        attributes = placemark.copy()
        attributes.image_scale = placemark_scale(properties, attributes.image_scale)
        config.attributes = attributes
        config.name = display_name(properties)

    elif geometry_type in LINE_TYPES:
        attributes = ShapeAttributes()
        attributes.draw_outline = True
        interior = attributes.interior_color
        attributes.outline_color = Color(
            0.1 * interior.red,
            0.3 * interior.green,
            0.7 * interior.blue,
            1.0,
        )
        attributes.outline_width = 2.0
        config.attributes = attributes

    elif geometry_type in POLYGON_TYPES:
        attributes = ShapeAttributes()
        # Random pastel fill
        attributes.interior_color = Color(
            0.375 + 0.5 * rng.random(),
            0.375 + 0.5 * rng.random(),
            0.375 + 0.5 * rng.random(),
            0.5,
        )
        interior = attributes.interior_color
        attributes.outline_color = Color(
            0.5 * interior.red,
            0.5 * interior.green,
            0.5 * interior.blue,
            1.0,
        )
        config.attributes = attributes

    return config
