"""Tests for FilteredLayerController: toggles, layer reuse, cancellation, events."""

from __future__ import annotations

import asyncio

import pytest

from globe_engine.controller import (
    DEFAULT_FACETS,
    SEARCH_FACETS,
    Facet,
    FilteredLayerController,
    InputEvent,
)
from globe_engine.feed.client import FeedError
from globe_engine.feed.query import FilterInputError
from globe_engine.layers import LayerManager
from tests.lib.fake_feed import BASE, FakeFeed
from tests.lib.fake_feed import feature_collection as _collection


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def layers():
    return LayerManager()


@pytest.fixture
def controller(layers, feed):
    return FilteredLayerController(layers, feed)


class TestInitialState:

    def test_search_facets_start_disabled(self, controller):
        for facet in SEARCH_FACETS:
            assert controller.binding(facet).enabled is False

    def test_default_facets_start_enabled(self, controller):
        for facet in DEFAULT_FACETS:
            assert controller.binding(facet).enabled is True

    def test_layer_names(self, controller):
        names = {b.facet: b.layer.name for b in controller.bindings()}
        assert names[Facet.ID] == "Search By Id"
        assert names[Facet.NAME] == "Search By Name"
        assert names[Facet.TIME_RANGE] == "Search By Time Range"
        assert names[Facet.FOUND] == "Found Meteorite"
        assert names[Facet.FELL] == "Fallen Meteorite"
        assert names[Facet.ALL] == "Show All Meteorites"

    def test_nothing_attached_before_search(self, controller, layers):
        assert layers.list_layers() == []

    def test_base_url_from_client(self, controller):
        assert controller.base_url == BASE


class TestToggleSearch:
    """id / name / latitude: search when hidden, hide when shown."""

    def test_search_by_id_fetches_exact_url(self, controller, feed, layers):
        async def _test():
            task = controller.search_by_id("1")
            assert task is not None
            await task

        asyncio.run(_test())
        assert feed.urls == [BASE + "/?id=1"]
        layer = controller.binding(Facet.ID).layer
        assert layer.visible is True
        assert len(layer.features) == 1
        assert layer.features[0].name == "Aachen"
        assert layers.get_layer(layer.layer_id) is layer
        assert layer.metadata["url"] == BASE + "/?id=1"

    def test_visible_layer_is_hidden_without_fetch(self, controller, feed):
        async def _test():
            await controller.search_by_id("1")
            return controller.search_by_id("2")

        second = asyncio.run(_test())
        assert second is None
        assert feed.urls == [BASE + "/?id=1"]
        assert controller.binding(Facet.ID).enabled is False

    def test_hide_then_search_reuses_layer(self, controller, feed, layers):
        """Third invocation searches again into the same layer object."""
        feed.responses[BASE + "/?name=Abee"] = _collection("Abee", "Abee 2")

        async def _test():
            await controller.search_by_name("Aachen")
            first = controller.binding(Facet.NAME).layer
            controller.search_by_name("ignored")  # hides
            await controller.search_by_name("Abee")
            return first

        first = asyncio.run(_test())
        layer = controller.binding(Facet.NAME).layer
        assert layer is first
        assert [f.name for f in layer.features] == ["Abee", "Abee 2"]
        assert len(layers.find_by_name("Search By Name")) == 1

    def test_latitude_query(self, controller, feed):
        async def _test():
            await controller.search_by_latitude("20")

        asyncio.run(_test())
        assert feed.urls == [
            BASE + "/?$query=SELECT%20*%20WHERE%20reclong%20>=%20%2725%27"
            "%20AND%20reclong%20<=%20%2715%27"
        ]

    def test_invalid_input_raises_before_fetch(self, controller, feed, layers):
        async def _test():
            controller.search_by_latitude("north")

        with pytest.raises(FilterInputError):
            asyncio.run(_test())
        assert feed.urls == []
        assert controller.binding(Facet.LATITUDE).enabled is False
        assert layers.list_layers() == []


class TestRangeSearch:
    """time range / mass range: always re-query, never toggle."""

    def test_time_range_url(self, controller, feed):
        async def _test():
            await controller.search_by_time_range("2000", "2010")

        asyncio.run(_test())
        assert feed.urls == [
            BASE + "/?$query=SELECT%20*%20WHERE%20year%20>=%20%272000-01-01T00:00:00.000%27"
            "%20AND%20year%20<=%20%272010-01-01T00:00:00.000%27"
        ]

    def test_mass_range_targets_its_own_layer(self, controller, feed):
        async def _test():
            await controller.search_by_mass_range("10", "1000")

        asyncio.run(_test())
        assert feed.urls == [
            BASE + "/?$query=SELECT%20*%20WHERE%20mass%20>=%20%2710%27"
            "%20AND%20mass%20<=%20%271000%27"
        ]
        mass = controller.binding(Facet.MASS_RANGE).layer
        assert mass.visible is True
        assert len(mass.features) == 1

    def test_repeat_does_not_toggle_and_replaces_contents(self, controller, feed):
        second_url = None

        async def _test():
            nonlocal second_url
            await controller.search_by_mass_range("10", "1000")
            task = controller.search_by_mass_range("1", "5")
            second_url = controller.binding(Facet.MASS_RANGE).last_url
            feed.responses[second_url] = _collection("Small", "Smaller")
            await task

        asyncio.run(_test())
        assert len(feed.urls) == 2
        layer = controller.binding(Facet.MASS_RANGE).layer
        assert layer.visible is True
        assert [f.name for f in layer.features] == ["Small", "Smaller"]

    def test_stale_request_cancelled(self, controller, feed):
        """A newer search for the same facet cancels the one in flight."""
        old_url = (
            BASE + "/?$query=SELECT%20*%20WHERE%20year%20>=%20%272000-01-01T00:00:00.000%27"
            "%20AND%20year%20<=%20%272010-01-01T00:00:00.000%27"
        )
        feed.responses[old_url] = _collection("Old")

        async def _test():
            feed.gates[old_url] = asyncio.Event()
            stale = controller.search_by_time_range("2000", "2010")
            await asyncio.sleep(0)  # let the stale request reach the feed
            fresh = controller.search_by_time_range("1990", "1999")
            feed.responses[controller.binding(Facet.TIME_RANGE).last_url] = _collection("New")
            feed.gates[old_url].set()
            await asyncio.wait({stale, fresh})
            return stale, fresh

        stale, fresh = asyncio.run(_test())
        assert stale.cancelled()
        assert not fresh.cancelled()
        layer = controller.binding(Facet.TIME_RANGE).layer
        assert [f.name for f in layer.features] == ["New"]

    def test_different_facets_run_independently(self, controller, feed):
        async def _test():
            a = controller.search_by_time_range("2000", "2010")
            b = controller.search_by_mass_range("10", "1000")
            await asyncio.gather(a, b)
            return a, b

        a, b = asyncio.run(_test())
        assert not a.cancelled() and not b.cancelled()
        assert len(feed.urls) == 2


class TestCompletion:

    def test_handler_called_on_success(self, controller):
        calls = []
        controller.add_completion_handler(lambda f, l, e: calls.append((f, l.name, e)))

        async def _test():
            await controller.search_by_id("1")

        asyncio.run(_test())
        assert calls == [(Facet.ID, "Search By Id", None)]

    def test_fetch_error_reported_not_raised(self, controller, feed):
        feed.error = FeedError(BASE + "/?id=1", "Feed returned HTTP 503")
        calls = []
        controller.add_completion_handler(lambda f, l, e: calls.append(e))

        async def _test():
            return await controller.search_by_id("1")

        layer = asyncio.run(_test())
        assert layer.features == []
        assert calls == [feed.error]
        assert controller.binding(Facet.ID).last_error is feed.error

    def test_bad_geojson_reported(self, controller, feed):
        feed.responses[BASE + "/?id=1"] = "<html>oops</html>"
        errors = []
        controller.add_completion_handler(lambda f, l, e: errors.append(e))

        async def _test():
            await controller.search_by_id("1")

        asyncio.run(_test())
        assert len(errors) == 1
        assert errors[0] is not None

    def test_failing_handler_does_not_break_others(self, controller):
        seen = []

        def bad(facet, layer, error):
            raise RuntimeError("handler bug")

        controller.add_completion_handler(bad)
        controller.add_completion_handler(lambda f, l, e: seen.append(f))

        async def _test():
            await controller.search_by_id("1")

        asyncio.run(_test())
        assert seen == [Facet.ID]

    def test_failing_style_callback_reported(self, layers, feed):
        def broken_style(geometry_type, properties):
            raise RuntimeError("style bug")

        controller = FilteredLayerController(layers, feed, style_callback=broken_style)
        errors = []
        controller.add_completion_handler(lambda f, l, e: errors.append(e))

        async def _test():
            return await asyncio.gather(*controller.load_default_filters())

        loaded = asyncio.run(_test())
        assert len(loaded) == 3
        assert len(errors) == 3
        assert all(isinstance(e, RuntimeError) for e in errors)
        assert isinstance(controller.binding(Facet.FOUND).last_error, RuntimeError)


class TestDefaultFilters:

    def test_load_default_filters(self, controller, feed, layers):
        async def _test():
            await asyncio.gather(*controller.load_default_filters())

        asyncio.run(_test())
        assert sorted(feed.urls) == sorted([
            BASE + "/?fall=Found",
            BASE + "/?fall=Fell",
            BASE,
        ])
        names = [l.name for l in layers.list_layers()]
        assert names == ["Found Meteorite", "Fallen Meteorite", "Show All Meteorites"]
        assert all(l.visible for l in layers.list_layers())

    def test_show_all_toggles(self, controller, feed):
        assert controller.show_all_meteorites() is False
        assert controller.show_all_meteorites() is True
        assert feed.urls == []


class TestHandleEvent:

    def _run(self, controller, event):
        async def _test():
            task = controller.handle_event(event)
            if task is not None:
                await task
            return task

        return asyncio.run(_test())

    def test_id_keyup_searches(self, controller, feed):
        event = InputEvent("id-search-text", kind="keyup", key="5", values={"id-search-text": "5"})
        assert self._run(controller, event) is not None
        assert feed.urls == [BASE + "/?id=5"]

    def test_id_button_click(self, controller, feed):
        event = InputEvent("id-search-button", values={"id-search-text": "7"})
        self._run(controller, event)
        assert feed.urls == [BASE + "/?id=7"]

    def test_range_ignores_plain_keys(self, controller, feed):
        values = {"range-start": "2000", "range-end": "201"}
        event = InputEvent("range-end", kind="keydown", key="1", values=values)
        assert self._run(controller, event) is None
        assert feed.urls == []

    def test_range_enter_confirms(self, controller, feed):
        values = {"range-start": "2000", "range-end": "2010"}
        event = InputEvent("range-end", kind="keydown", key="Enter", values=values)
        assert self._run(controller, event) is not None
        assert "year%20>=%20%272000" in feed.urls[0]

    def test_click_into_range_field_does_not_search(self, controller, feed):
        values = {"range-start": "2000", "range-end": "2010"}
        assert self._run(controller, InputEvent("range-start", values=values)) is None
        assert self._run(controller, InputEvent("range-end", values=values)) is None
        assert feed.urls == []
        assert controller.binding(Facet.TIME_RANGE).enabled is False

    def test_click_into_empty_mass_field_is_ignored(self, controller, feed):
        values = {"mass-min": "", "mass-max": ""}
        assert self._run(controller, InputEvent("mass-min", values=values)) is None
        assert self._run(controller, InputEvent("mass-max", values=values)) is None
        assert feed.urls == []

    def test_enter_keyup_does_not_confirm(self, controller, feed):
        values = {"mass-min": "10", "mass-max": "1000"}
        event = InputEvent("mass-max", kind="keyup", key="Enter", values=values)
        assert self._run(controller, event) is None
        assert feed.urls == []

    def test_confirms(self):
        assert InputEvent("go-button2").confirms("go-button2") is True
        assert InputEvent("range-start").confirms("go-button2") is False
        assert InputEvent("range-start", kind="keydown", key="Enter").confirms("go-button2") is True

    def test_time_range_button(self, controller, feed):
        values = {"range-start": "1990", "range-end": "2000"}
        self._run(controller, InputEvent("go-button2", values=values))
        assert len(feed.urls) == 1

    def test_mass_enter(self, controller, feed):
        values = {"mass-min": "10", "mass-max": "1000"}
        self._run(controller, InputEvent("mass-max", kind="keydown", key="Enter", values=values))
        assert feed.urls[0].endswith("mass%20<=%20%271000%27")

    def test_input_events_ignored(self, controller, feed):
        event = InputEvent("name-search-text", kind="input", values={"name-search-text": "A"})
        assert self._run(controller, event) is None
        assert feed.urls == []

    def test_unknown_control_ignored(self, controller, feed):
        assert self._run(controller, InputEvent("canvasOne")) is None

    def test_show_all_button(self, controller, feed):
        self._run(controller, InputEvent("show-all-button"))
        assert controller.binding(Facet.ALL).enabled is False
        assert feed.urls == []

    def test_invalid_input_raises(self, controller):
        values = {"mass-min": "heavy", "mass-max": "1000"}
        with pytest.raises(FilterInputError):
            self._run(controller, InputEvent("mass-search-button", values=values))


class TestShutdown:

    def test_aclose_cancels_in_flight(self, controller, feed):
        async def _test():
            feed.gates[BASE + "/?id=1"] = asyncio.Event()
            task = controller.search_by_id("1")
            await asyncio.sleep(0)
            await controller.aclose()
            return task

        task = asyncio.run(_test())
        assert task.cancelled()
        assert controller.binding(Facet.ID).in_flight is False
