"""Renderable layer system: layers, registry, GeoJSON load and export.

Parsing and export use only Python stdlib json.
"""

from globe_engine.layers.layer import Layer, LayerFeature
from globe_engine.layers.manager import LayerManager

__all__ = ["Layer", "LayerFeature", "LayerManager"]
