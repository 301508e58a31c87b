"""LayerManager: registry of the layers currently attached to the globe.

Manages the lifecycle of Layer objects: add, remove, get, list,
export to GeoJSON, and visibility control. List order is draw order.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone

from globe_engine.layers.layer import Layer

logger = logging.getLogger(__name__)


def new_layer_id() -> str:
    return f"layer-{uuid.uuid4().hex[:8]}"


class LayerManager:
    """Registry of active globe layers."""

    def __init__(self) -> None:
        self._layers: dict[str, Layer] = {}

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, layer_id: str) -> bool:
        return layer_id in self._layers

    def add_layer(self, layer: Layer) -> str:
        """Add a layer to the registry.

        Adding a layer that is already registered under the same ID is a
        no-op, so callers can re-attach a reused layer safely.

        Args:
            layer: The Layer to register.

        Returns:
            The layer_id of the added layer.
        """
        if not layer.layer_id:
            layer.layer_id = new_layer_id()
        if not layer.created_at:
            now = datetime.now(timezone.utc).isoformat()
            layer.created_at = now
            layer.updated_at = now
        if layer.layer_id not in self._layers:
            logger.debug(f"Layer attached: {layer.layer_id} ({layer.name})")
        self._layers[layer.layer_id] = layer
        return layer.layer_id

    def remove_layer(self, layer_id: str) -> bool:
        """Remove a layer from the registry.

        Args:
            layer_id: ID of the layer to remove.

        Returns:
            True if the layer was removed, False if it didn't exist.
        """
        if layer_id in self._layers:
            del self._layers[layer_id]
            return True
        return False

    def get_layer(self, layer_id: str) -> Layer | None:
        """Get a layer by ID.

        Args:
            layer_id: ID of the layer to retrieve.

        Returns:
            The Layer if found, None otherwise.
        """
        return self._layers.get(layer_id)

    def find_by_name(self, name: str) -> list[Layer]:
        """All layers whose display name matches exactly."""
        return [layer for layer in self._layers.values() if layer.name == name]

    def list_layers(self) -> list[Layer]:
        """List all registered layers in draw order.

        Returns:
            List of all Layer objects in the registry.
        """
        return list(self._layers.values())

    def set_visibility(self, layer_id: str, visible: bool) -> None:
        """Set the visibility of a layer.

        Args:
            layer_id: ID of the layer.
            visible: Whether the layer should be visible.

        Raises:
            KeyError: If the layer_id is not found.
        """
        layer = self._require(layer_id)
        layer.visible = visible

    def toggle_visibility(self, layer_id: str) -> bool:
        """Flip the visibility of a layer and return the new state.

        Raises:
            KeyError: If the layer_id is not found.
        """
        layer = self._require(layer_id)
        layer.visible = not layer.visible
        return layer.visible

    def export_layer(self, layer_id: str, format: str = "geojson") -> str:
        """Export a layer to a string in the given format.

        Args:
            layer_id: ID of the layer to export.
            format: Output format. Only "geojson" is supported.

        Returns:
            String representation in the requested format.

        Raises:
            KeyError: If the layer_id is not found.
            ValueError: If the format is not supported.
        """
        layer = self._require(layer_id)

        if format == "geojson":
            from globe_engine.layers.exporters.geojson import export_geojson
            return json.dumps(export_geojson(layer))
        raise ValueError(f"Unsupported export format: {format}")

    def _require(self, layer_id: str) -> Layer:
        layer = self._layers.get(layer_id)
        if layer is None:
            raise KeyError(f"Layer not found: {layer_id}")
        return layer
