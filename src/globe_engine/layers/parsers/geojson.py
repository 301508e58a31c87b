"""Parse GeoJSON (RFC 7946) into layers using stdlib json.

Handles FeatureCollection, Feature and bare geometry objects with
Point/LineString/Polygon geometries and their Multi* variants. Passes
through properties dict. Coordinates are already in [lng, lat] order.
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from globe_engine.layers.layer import GEOMETRY_TYPES, Layer, LayerFeature
from globe_engine.styling import ShapeConfiguration, StyleCallback


class GeoJSONError(ValueError):
    """Raised when feed content cannot be read as GeoJSON."""


def parse_geojson(geojson_string: str) -> Layer:
    """Parse a GeoJSON string into a new Layer.

    Args:
        geojson_string: Raw GeoJSON content (string).

    Returns:
        Layer with parsed features. Returns empty layer on parse errors.
    """
    layer = Layer(
        layer_id=f"layer-{uuid.uuid4().hex[:8]}",
        name="",
        source_format="geojson",
        features=[],
    )
    try:
        data = _decode(geojson_string)
    except GeoJSONError:
        return layer

    layer.features = _parse_features(data)

    layer_name = data.get("name", "")
    if not layer_name and layer.features:
        # Try to derive name from first feature
        first_name = layer.features[0].properties.get("name", "")
        if first_name:
            layer_name = f"GeoJSON ({first_name}...)"
    layer.name = layer_name
    return layer


def load_geojson(
    geojson_string: str,
    style_callback: StyleCallback | None,
    layer: Layer,
) -> int:
    """Parse GeoJSON and append its features to an existing layer.

    The style callback is invoked once per feature with the geometry type
    and property bag; its configuration and display name are stored on the
    feature. Existing features in ``layer`` are kept.

    Args:
        geojson_string: Raw GeoJSON content.
        style_callback: Per-feature styling function, or None for no style.
        layer: Target layer.

    Returns:
        Number of features appended.

    Raises:
        GeoJSONError: If the content is not a GeoJSON object.
    """
    data = _decode(geojson_string)
    features = _parse_features(data)
    if style_callback is not None:
        for feature in features:
            config = style_callback(feature.geometry_type, feature.properties)
            if isinstance(config, ShapeConfiguration):
                feature.style = config
                feature.name = config.name
    layer.extend(features)
    return len(features)


def _decode(geojson_string: str) -> dict:
    try:
        data = json.loads(geojson_string)
    except (json.JSONDecodeError, TypeError) as e:
        raise GeoJSONError(f"Invalid GeoJSON: {e}") from e
    if not isinstance(data, dict):
        raise GeoJSONError("GeoJSON root must be an object")
    if "error" in data and "type" not in data:
        # Socrata reports bad queries as {"error": true, "message": ...}
        raise GeoJSONError(f"Feed error: {data.get('message', data['error'])}")
    return data


def _parse_features(data: dict) -> list[LayerFeature]:
    features: list[LayerFeature] = []
    kind = data.get("type")

    if kind == "FeatureCollection":
        raw_features = data.get("features") or []
        for idx, raw in enumerate(raw_features):
            feature = _parse_feature(raw, idx)
            if feature is not None:
                features.append(feature)
    elif kind == "Feature":
        feature = _parse_feature(data, 0)
        if feature is not None:
            features.append(feature)
    elif kind in GEOMETRY_TYPES:
        feature = _parse_feature({"type": "Feature", "geometry": data}, 0)
        if feature is not None:
            features.append(feature)
    return features


def _parse_feature(raw: Any, idx: int) -> LayerFeature | None:
    """Parse a single GeoJSON Feature dict into a LayerFeature."""
    if not isinstance(raw, dict):
        return None

    geometry = raw.get("geometry")
    if not isinstance(geometry, dict):
        return None

    geom_type = geometry.get("type", "")
    coordinates = geometry.get("coordinates")

    if geom_type not in GEOMETRY_TYPES or coordinates is None:
        return None

    properties = raw.get("properties") or {}
    if not isinstance(properties, dict):
        properties = {}

    year = properties.get("year")

    feature_id = raw.get("id", properties.get("id", f"geojson-{idx}"))
    if not isinstance(feature_id, str):
        feature_id = str(feature_id)

    return LayerFeature(
        feature_id=feature_id,
        geometry_type=geom_type,
        coordinates=coordinates,
        properties=properties,
        timestamp=year if isinstance(year, str) else None,
    )
