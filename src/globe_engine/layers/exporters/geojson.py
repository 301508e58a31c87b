"""Export Layer to GeoJSON dict (RFC 7946 compliant).

Uses only stdlib json. GeoJSON coordinates are [lng, lat] (already the
internal storage convention). Styling travels in a foreign ``style`` member
so the browser globe can draw each feature as the styling callback decided.
"""

from __future__ import annotations

from globe_engine.layers.layer import Layer, LayerFeature
from globe_engine.styling import ShapeConfiguration


def export_geojson(layer: Layer) -> dict:
    """Export a Layer to a GeoJSON FeatureCollection dict.

    Args:
        layer: The Layer to export.

    Returns:
        Dict representing a valid GeoJSON FeatureCollection.
    """
    features = []
    for feature in layer.features:
        gj_feature = _feature_to_geojson(feature)
        features.append(gj_feature)

    return {
        "type": "FeatureCollection",
        "name": layer.name,
        "features": features,
    }


def _feature_to_geojson(feature: LayerFeature) -> dict:
    """Convert a LayerFeature to a GeoJSON Feature dict."""
    result = {
        "type": "Feature",
        "id": feature.feature_id,
        "geometry": {
            "type": feature.geometry_type,
            "coordinates": feature.coordinates,
        },
        "properties": dict(feature.properties),
    }
    if isinstance(feature.style, ShapeConfiguration):
        result["style"] = feature.style.to_dict()
    elif isinstance(feature.style, dict):
        result["style"] = dict(feature.style)
    return result
