"""Layer and LayerFeature dataclasses for the renderable layer system.

All coordinates are stored in GeoJSON convention: [lng, lat] or [lng, lat, alt].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

POINT_TYPES = ("Point", "MultiPoint")
LINE_TYPES = ("LineString", "MultiLineString")
POLYGON_TYPES = ("Polygon", "MultiPolygon")
GEOMETRY_TYPES = POINT_TYPES + LINE_TYPES + POLYGON_TYPES


@dataclass
class LayerFeature:
    """A single feature (point, line, polygon) within a layer.

    Attributes:
        feature_id: Unique identifier for this feature.
        geometry_type: One of GEOMETRY_TYPES.
        coordinates: GeoJSON-style coordinate arrays.
            Point: [lng, lat] or [lng, lat, alt]
            LineString: [[lng, lat], [lng, lat], ...]
            Polygon: [[[lng, lat], [lng, lat], ...]]  (list of rings)
            Multi*: a list of the single-geometry arrays above.
        properties: Arbitrary key-value metadata from the feed record.
        style: Shape configuration produced by the styling callback, if any.
        name: Display name chosen by the styling callback, if any.
        timestamp: Optional ISO8601 timestamp for time-series data.
    """

    feature_id: str
    geometry_type: str
    coordinates: list
    properties: dict
    style: Any = None
    name: str | None = None
    timestamp: str | None = None


@dataclass
class Layer:
    """A named, toggleable collection of renderable features.

    Attributes:
        layer_id: Unique identifier for this layer.
        name: Human-readable display name ("Search By Id", ...).
        source_format: Original format ("geojson" or "base" for imagery/UI).
        features: List of LayerFeature instances.
        visible: Whether the layer is currently rendered.
        opacity: Rendering opacity (0.0 to 1.0).
        z_index: Draw order (higher = on top).
        metadata: Arbitrary key-value metadata (source url, facet, ...).
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 last-update timestamp.
    """

    layer_id: str
    name: str
    source_format: str
    features: list[LayerFeature]
    visible: bool = True
    opacity: float = 1.0
    z_index: int = 0
    metadata: dict = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    def clear(self) -> None:
        """Drop all features but keep the layer itself (and its identity)."""
        self.features.clear()
        self.touch()

    def extend(self, features: Iterable[LayerFeature]) -> None:
        """Append features; loading into a layer never replaces what is there."""
        self.features.extend(features)
        self.touch()

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc).isoformat()
