"""Filtered-layer controller: turns search input into feed layers.

Each searchable facet (id, name, latitude, time range, mass range) owns one
layer for the life of the controller. A search clears that layer and
reloads it in place; it is never replaced, so the globe holds at most one
layer per facet. The three default filters (found, fell, all) are loaded
once and stay attached.

Fetches run as one ``asyncio.Task`` per facet. Starting a new request for
a facet cancels the facet's stale in-flight request first, so an older
response can never land in the layer after a newer one was asked for.

Search methods are plain (non-async) callables like the UI callbacks that
drive them, but they must be called from inside a running event loop.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping

from globe_engine.feed import query
from globe_engine.feed.client import FeedClient, FeedError
from globe_engine.layers.layer import Layer
from globe_engine.layers.manager import LayerManager
from globe_engine.layers.parsers.geojson import GeoJSONError, load_geojson
from globe_engine.styling import StyleCallback, configure_shape

logger = logging.getLogger(__name__)

CONFIRM_KEY = "Enter"


class Facet(str, Enum):
    ID = "id"
    NAME = "name"
    LATITUDE = "latitude"
    TIME_RANGE = "time-range"
    MASS_RANGE = "mass-range"
    FOUND = "found"
    FELL = "fell"
    ALL = "all"


SEARCH_FACETS = (Facet.ID, Facet.NAME, Facet.LATITUDE, Facet.TIME_RANGE, Facet.MASS_RANGE)
DEFAULT_FACETS = (Facet.FOUND, Facet.FELL, Facet.ALL)


@dataclass
class FacetBinding:
    """One searchable facet: its controls, its layer and its query builder.

    ``query_builder(base_url, *inputs)`` returns the full feed URL and raises
    FilterInputError for unusable input.
    """
    facet: Facet
    trigger_control: str
    input_controls: tuple[str, ...]
    layer: Layer
    query_builder: Callable[..., str]
    confirm_only: bool = False
    toggles: bool = True
    task: asyncio.Task | None = None
    last_url: str | None = None
    last_error: Exception | None = None

    @property
    def enabled(self) -> bool:
        return self.layer.visible

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self.layer.visible = value

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()


@dataclass
class InputEvent:
    """A UI event from the search page.

    Attributes:
        control: Element id the event fired on ("id-search-text", ...).
        kind: "click", "keydown", "keyup" or "input".
        key: Key name for keyboard events ("Enter", "a", ...).
        values: Current text of the page's input fields, by element id.
    """
    control: str
    kind: str = "click"
    key: str | None = None
    values: Mapping[str, str] = field(default_factory=dict)

    def confirms(self, trigger_control: str) -> bool:
        """True for a click on ``trigger_control`` or an Enter keydown."""
        if self.kind == "click":
            return self.control == trigger_control
        return self.kind == "keydown" and self.key == CONFIRM_KEY


# facet -> (layer name, trigger control, input controls, confirm only, toggles)
_FACET_LAYOUT: dict[Facet, tuple[str, str, tuple[str, ...], bool, bool]] = {
    Facet.ID: ("Search By Id", "id-search-button", ("id-search-text",), False, True),
    Facet.NAME: ("Search By Name", "name-search-button", ("name-search-text",), False, True),
    Facet.LATITUDE: ("Search By Latitude", "location-search-button", ("location-search-text",), False, True),
    Facet.TIME_RANGE: ("Search By Time Range", "go-button2", ("range-start", "range-end"), True, False),
    Facet.MASS_RANGE: ("Search By Mass Range", "mass-search-button", ("mass-min", "mass-max"), True, False),
    Facet.FOUND: ("Found Meteorite", "", (), False, False),
    Facet.FELL: ("Fallen Meteorite", "", (), False, False),
    Facet.ALL: ("Show All Meteorites", "show-all-button", (), False, True),
}

_QUERY_BUILDERS: dict[Facet, Callable[..., str]] = {
    Facet.ID: query.id_query,
    Facet.NAME: query.name_query,
    Facet.LATITUDE: query.latitude_query,
    Facet.TIME_RANGE: query.time_range_query,
    Facet.MASS_RANGE: query.mass_range_query,
    Facet.FOUND: lambda base: query.fall_query(base, "Found"),
    Facet.FELL: lambda base: query.fall_query(base, "Fell"),
    Facet.ALL: query.all_query,
}

CompletionHandler = Callable[[Facet, Layer, "Exception | None"], None]


class FilteredLayerController:
    """Owns the facet layers and runs the searches that fill them."""

    def __init__(
        self,
        layers: LayerManager,
        client: FeedClient,
        style_callback: StyleCallback = configure_shape,
    ) -> None:
        self._layers = layers
        self._client = client
        self._style_callback = style_callback
        self._handlers: list[CompletionHandler] = []
        self._bindings: dict[Facet, FacetBinding] = {}
        self._controls: dict[str, Facet] = {}

        for facet, (name, trigger, inputs, confirm_only, toggles) in _FACET_LAYOUT.items():
            layer = Layer(
                layer_id=f"facet-{facet.value}",
                name=name,
                source_format="geojson",
                features=[],
                visible=facet in DEFAULT_FACETS,
                metadata={"facet": facet.value},
            )
            binding = FacetBinding(
                facet=facet,
                trigger_control=trigger,
                input_controls=inputs,
                layer=layer,
                query_builder=_QUERY_BUILDERS[facet],
                confirm_only=confirm_only,
                toggles=toggles,
            )
            self._bindings[facet] = binding
            for control in (trigger, *inputs):
                if control:
                    self._controls[control] = facet

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return self._client.base_url

    def binding(self, facet: Facet) -> FacetBinding:
        return self._bindings[facet]

    def bindings(self) -> list[FacetBinding]:
        return list(self._bindings.values())

    def facet_for(self, control: str) -> Facet | None:
        """The facet that owns a page control, or None if it is unbound."""
        return self._controls.get(control)

    def add_completion_handler(self, handler: CompletionHandler) -> None:
        """Register ``handler(facet, layer, error)``; error is None on success."""
        self._handlers.append(handler)

    # ------------------------------------------------------------------
    # Searches
    # ------------------------------------------------------------------

    def search_by_id(self, raw_id: str) -> asyncio.Task | None:
        """Toggle off the id layer if shown, otherwise search by record id."""
        return self._toggle_or_search(Facet.ID, raw_id)

    def search_by_name(self, raw_name: str) -> asyncio.Task | None:
        """Toggle off the name layer if shown, otherwise search by name."""
        return self._toggle_or_search(Facet.NAME, raw_name)

    def search_by_latitude(self, raw_latitude: str) -> asyncio.Task | None:
        """Toggle off the latitude layer if shown, otherwise search a ±5 band."""
        return self._toggle_or_search(Facet.LATITUDE, raw_latitude)

    def search_by_time_range(self, start_text: str, end_text: str) -> asyncio.Task:
        """Re-query the time range layer (years taken from the first 4 chars)."""
        return self._search(Facet.TIME_RANGE, start_text, end_text)

    def search_by_mass_range(self, min_text: str, max_text: str) -> asyncio.Task:
        """Re-query the mass range layer."""
        return self._search(Facet.MASS_RANGE, min_text, max_text)

    def load_default_filters(self) -> list[asyncio.Task]:
        """Load the found, fell and all layers. They stay attached for good."""
        return [self._search(facet) for facet in DEFAULT_FACETS]

    def show_all_meteorites(self) -> bool:
        """Toggle the "all meteorites" layer; returns the new visibility."""
        layer = self._bindings[Facet.ALL].layer
        layer.visible = not layer.visible
        return layer.visible

    def handle_event(self, event: InputEvent) -> asyncio.Task | None:
        """Route a page event to the facet that owns the control.

        Range facets only act on confirm events (a click on their button or
        Enter in one of their fields); clicking into a range field does
        nothing. The other facets act on any click or key event on their
        controls. Events for unknown controls are ignored.

        Raises:
            FilterInputError: If the facet's input cannot be queried.
        """
        facet = self._controls.get(event.control)
        if facet is None:
            logger.debug(f"Ignoring event on unbound control {event.control!r}")
            return None
        binding = self._bindings[facet]
        if binding.confirm_only and not event.confirms(binding.trigger_control):
            return None
        if event.kind not in ("click", "keydown", "keyup"):
            return None
        if facet is Facet.ALL:
            self.show_all_meteorites()
            return None

        inputs = [event.values.get(control, "") for control in binding.input_controls]
        if binding.toggles:
            return self._toggle_or_search(facet, *inputs)
        return self._search(facet, *inputs)

    async def aclose(self) -> None:
        """Cancel every in-flight fetch and wait for the tasks to unwind."""
        tasks = [b.task for b in self._bindings.values() if b.in_flight]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _toggle_or_search(self, facet: Facet, *inputs: str) -> asyncio.Task | None:
        binding = self._bindings[facet]
        if binding.layer.visible:
            binding.layer.visible = False
            logger.info(f"{binding.layer.name}: hidden")
            return None
        return self._search(facet, *inputs)

    def _search(self, facet: Facet, *inputs: str) -> asyncio.Task:
        binding = self._bindings[facet]
        # Validate before touching the layer or any in-flight request
        url = binding.query_builder(self.base_url, *inputs)

        if binding.in_flight:
            binding.task.cancel()
            logger.debug(f"{binding.layer.name}: cancelled stale request {binding.last_url}")

        binding.layer.clear()
        binding.layer.metadata["url"] = url
        binding.layer.visible = True
        binding.last_url = url
        binding.last_error = None
        self._layers.add_layer(binding.layer)

        logger.info(f"{binding.layer.name}: {url}")
        binding.task = asyncio.get_running_loop().create_task(
            self._load(binding, url), name=f"facet-{facet.value}",
        )
        return binding.task

    async def _load(self, binding: FacetBinding, url: str) -> Layer:
        error: Exception | None = None
        try:
            text = await self._client.fetch(url)
            count = load_geojson(text, self._style_callback, binding.layer)
            logger.info(f"{binding.layer.name}: loaded {count} features")
        except asyncio.CancelledError:
            logger.debug(f"{binding.layer.name}: request cancelled")
            raise
        except (FeedError, GeoJSONError) as e:
            logger.warning(f"{binding.layer.name}: {e}")
            error = e
        except Exception as e:
            logger.exception(f"{binding.layer.name}: load failed")
            error = e
        binding.last_error = error
        self._notify(binding, error)
        return binding.layer

    def _notify(self, binding: FacetBinding, error: Exception | None) -> None:
        for handler in self._handlers:
            try:
                handler(binding.facet, binding.layer, error)
            except Exception:
                logger.exception(f"Completion handler failed for {binding.facet.value}")
