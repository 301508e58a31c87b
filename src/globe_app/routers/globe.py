"""Globe API: scene set-up, layer list, visibility and per-layer GeoJSON."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from globe_engine.layers import Layer, LayerManager
from globe_engine.scene import Location, describe_scene

router = APIRouter(prefix="/api", tags=["globe"])


class VisibilityRequest(BaseModel):
    visible: bool


def _get_layers(request: Request) -> LayerManager:
    """Get the layer manager from app state."""
    layers = getattr(request.app.state, "layers", None)
    if layers is None:
        raise HTTPException(status_code=503, detail="Globe not initialized")
    return layers


def layer_summary(layer: Layer) -> dict:
    return {
        "id": layer.layer_id,
        "name": layer.name,
        "source_format": layer.source_format,
        "visible": layer.visible,
        "feature_count": len(layer.features),
        "url": layer.metadata.get("url"),
        "updated_at": layer.updated_at,
    }


@router.get("/scene")
async def get_scene(request: Request):
    """Base layers, placemark style and initial camera target for the globe."""
    layers = _get_layers(request)
    go_to = getattr(request.app.state, "go_to", None) or Location(0.0, 0.0)
    return describe_scene(layers, go_to=go_to)


@router.get("/layers")
async def list_layers(request: Request):
    """All attached layers in draw order."""
    return [layer_summary(layer) for layer in _get_layers(request).list_layers()]


@router.get("/layers/{layer_id}")
async def get_layer(layer_id: str, request: Request):
    layer = _get_layers(request).get_layer(layer_id)
    if layer is None:
        raise HTTPException(status_code=404, detail=f"Layer '{layer_id}' not found")
    return layer_summary(layer)


@router.post("/layers/{layer_id}/visibility")
async def set_visibility(layer_id: str, body: VisibilityRequest, request: Request):
    layers = _get_layers(request)
    try:
        layers.set_visibility(layer_id, body.visible)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Layer '{layer_id}' not found")
    return layer_summary(layers.get_layer(layer_id))


@router.post("/layers/{layer_id}/toggle")
async def toggle_visibility(layer_id: str, request: Request):
    layers = _get_layers(request)
    try:
        layers.toggle_visibility(layer_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Layer '{layer_id}' not found")
    return layer_summary(layers.get_layer(layer_id))


@router.get("/layers/{layer_id}/geojson")
async def layer_geojson(layer_id: str, request: Request):
    """Styled features of one layer as a GeoJSON FeatureCollection."""
    try:
        content = _get_layers(request).export_layer(layer_id, "geojson")
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Layer '{layer_id}' not found")
    return Response(content=content, media_type="application/geo+json")
