"""Globe scene set-up: base imagery/UI layers and the initial camera target.

Base layers carry no features; they only tell the browser globe which of its
built-in layers to create and whether each starts enabled. Feed layers are
attached after them, so they always draw on top.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from globe_engine.layers.layer import Layer
from globe_engine.layers.manager import LayerManager
from globe_engine.styling import DEFAULT_PLACEMARK, PlacemarkAttributes, ShapeConfiguration

# (kind, display name, enabled)
BASE_LAYERS = (
    ("bmng", "Blue Marble", True),
    ("atmosphere", "Atmosphere", True),
    ("compass", "Compass", True),
    ("coordinates", "Coordinates", True),
    ("view-controls", "View Controls", True),
)


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


DEFAULT_LOCATION = Location(38.72, 14.91)


def base_layers() -> list[Layer]:
    return [
        Layer(
            layer_id=f"base-{kind}",
            name=name,
            source_format="base",
            features=[],
            visible=enabled,
            metadata={"kind": kind},
        )
        for kind, name, enabled in BASE_LAYERS
    ]


def install_base_layers(manager: LayerManager) -> list[str]:
    """Attach the base layers; call before any feed layer is added."""
    return [manager.add_layer(layer) for layer in base_layers()]


def describe_scene(
    manager: LayerManager,
    go_to: Location = DEFAULT_LOCATION,
    placemark: PlacemarkAttributes = DEFAULT_PLACEMARK,
) -> dict:
    """Everything the browser needs to build the globe, as plain JSON."""
    return {
        "goTo": asdict(go_to),
        "placemark": ShapeConfiguration(attributes=placemark).to_dict()["attributes"],
        "layers": [
            {
                "id": layer.layer_id,
                "name": layer.name,
                "kind": layer.metadata.get("kind", layer.source_format),
                "enabled": layer.visible,
                "featureCount": len(layer.features),
            }
            for layer in manager.list_layers()
        ],
    }
