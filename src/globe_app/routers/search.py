"""Search API: the page's search widgets, one endpoint per facet.

Searches start a fetch and return straight away, like the widgets they back.
Pass ``?wait=true`` to block until the facet's layer has been loaded.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, Query, Request
from loguru import logger
from pydantic import BaseModel, Field

from globe_app.routers.globe import layer_summary
from globe_engine.controller import Facet, FacetBinding, FilteredLayerController, InputEvent
from globe_engine.feed.query import FilterInputError

router = APIRouter(prefix="/api/search", tags=["search"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class TextSearchRequest(BaseModel):
    """Single text field search (id, name, latitude)."""
    value: str


class TimeRangeRequest(BaseModel):
    start: str
    end: str


class MassRangeRequest(BaseModel):
    min: str
    max: str


class InputEventRequest(BaseModel):
    """A raw event from the search page."""
    control: str
    kind: str = "click"
    key: str | None = None
    values: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_controller(request: Request) -> FilteredLayerController:
    """Get the filtered-layer controller from app state."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Search controller not available")
    return controller


def _start(label: str, start):
    """Call a search starter, mapping bad input to a 400."""
    try:
        return start()
    except FilterInputError as e:
        logger.info(f"Rejected {label} search: {e.message}")
        raise HTTPException(status_code=400, detail={"field": e.field, "message": e.message})


async def _settle(binding: FacetBinding | None, task, wait: bool) -> bool:
    """Wait for ``task`` when asked; returns True if a newer search superseded it.

    A failed load on a waited-for task becomes a 502.
    """
    if task is None or not wait:
        return False
    await asyncio.wait({task})
    if task.cancelled():
        return True
    if binding is not None and binding.last_error is not None:
        raise HTTPException(status_code=502, detail=str(binding.last_error))
    return False


async def _run(
    controller: FilteredLayerController,
    facet: Facet,
    start,
    wait: bool,
) -> dict:
    """Invoke a search starter and shape the response."""
    task = _start(facet.value, start)
    binding = controller.binding(facet)
    superseded = await _settle(binding, task, wait)
    return {
        "facet": facet.value,
        "fetching": task is not None and not task.done(),
        "superseded": superseded,
        "layer": layer_summary(binding.layer),
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/id")
async def search_by_id(body: TextSearchRequest, request: Request, wait: bool = Query(False)):
    """Toggle the id layer off, or search the feed by record id."""
    controller = _get_controller(request)
    return await _run(controller, Facet.ID, lambda: controller.search_by_id(body.value), wait)


@router.post("/name")
async def search_by_name(body: TextSearchRequest, request: Request, wait: bool = Query(False)):
    """Toggle the name layer off, or search the feed by meteorite name."""
    controller = _get_controller(request)
    return await _run(controller, Facet.NAME, lambda: controller.search_by_name(body.value), wait)


@router.post("/latitude")
async def search_by_latitude(body: TextSearchRequest, request: Request, wait: bool = Query(False)):
    """Toggle the latitude layer off, or search a ±5 degree band."""
    controller = _get_controller(request)
    return await _run(
        controller, Facet.LATITUDE, lambda: controller.search_by_latitude(body.value), wait,
    )


@router.post("/time-range")
async def search_by_time_range(body: TimeRangeRequest, request: Request, wait: bool = Query(False)):
    """Search landings between two years."""
    controller = _get_controller(request)
    return await _run(
        controller, Facet.TIME_RANGE,
        lambda: controller.search_by_time_range(body.start, body.end), wait,
    )


@router.post("/mass-range")
async def search_by_mass_range(body: MassRangeRequest, request: Request, wait: bool = Query(False)):
    """Search landings between two masses (grams)."""
    controller = _get_controller(request)
    return await _run(
        controller, Facet.MASS_RANGE,
        lambda: controller.search_by_mass_range(body.min, body.max), wait,
    )


@router.post("/show-all")
async def show_all(request: Request):
    """Toggle the "all meteorites" layer."""
    controller = _get_controller(request)
    visible = controller.show_all_meteorites()
    return {"facet": Facet.ALL.value, "visible": visible}


@router.post("/events")
async def page_event(body: InputEventRequest, request: Request, wait: bool = Query(False)):
    """Feed a raw page event (click / key) to the controller."""
    controller = _get_controller(request)
    event = InputEvent(control=body.control, kind=body.kind, key=body.key, values=body.values)
    facet = controller.facet_for(body.control)
    task = _start(facet.value if facet else body.control, lambda: controller.handle_event(event))
    binding = controller.binding(facet) if facet is not None else None
    superseded = await _settle(binding, task, wait)
    return {
        "control": body.control,
        "facet": facet.value if facet else None,
        "fetching": task is not None and not task.done(),
        "superseded": superseded,
        "layers": [layer_summary(b.layer) for b in controller.bindings()],
    }
