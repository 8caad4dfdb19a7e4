"""Tests for the viewport synchronization controller."""

import asyncio
from unittest.mock import patch

import pytest

from models import FilterSettings, Position, PropertyRecord, ViewportBounds
from api.services.viewport_sync import ControllerStatus, ViewportSyncController

LAGOS = ViewportBounds(south=6.3, north=6.7, west=3.0, east=3.8)
NEW_YORK = ViewportBounds(south=40.5, north=41.0, west=-74.5, east=-73.5)
EMPTY_OCEAN = ViewportBounds(south=-10, north=-9, west=-30, east=-29)


def _ids(properties):
    return [p.id for p in properties]


@pytest.fixture
def controller(lagos_records, engine):
    return ViewportSyncController(lagos_records, engine)


def test_starts_uninitialized_with_everything_in_price_range(controller, engine):
    """Before any viewport, only the price filter applies."""
    assert controller.status is ControllerStatus.UNINITIALIZED
    assert controller.bounds is None
    # Property 3 (999,999,999,999) is above the default 1B max price
    assert _ids(controller.current_filtered) == [1, 2]
    assert engine.drain()[0] == {"op": "set_layers", "heatmap": False, "clustering": True}


def test_example_scenario(controller):
    """Lagos viewport: properties 1 and 2, mean 23.75M, Lagos most popular."""
    update = controller.on_viewport_change(LAGOS)

    assert controller.status is ControllerStatus.READY
    assert _ids(update.properties) == [1, 2]
    assert update.statistics.average_price == pytest.approx(23750000)
    assert update.statistics.popular_areas == ["Lagos"]
    assert update.bounds == LAGOS


def test_version_increases_with_every_pass(controller):
    """Each filtering pass commits a newer version."""
    first = controller.on_viewport_change(LAGOS).version
    second = controller.on_viewport_change(NEW_YORK).version

    assert second > first
    assert controller.version == second


def test_filter_change_reapplies_price_range(controller):
    """Narrowing the price range removes the expensive listing."""
    controller.on_viewport_change(LAGOS)
    update = controller.on_filter_settings_change(FilterSettings(price_range=(0, 10_000_000)))

    assert _ids(update.properties) == [2]
    assert update.statistics.total_count == 1
    assert controller.markers.marker_ids == {2}


def test_layer_toggles_pass_through_to_engine(controller, engine):
    """Heatmap/clustering toggles reach the map engine; radius is only stored."""
    engine.drain()
    update = controller.on_filter_settings_change(
        FilterSettings(heatmap=True, clustering=False, radius=12)
    )

    assert {"op": "set_layers", "heatmap": True, "clustering": False} in engine.drain()
    assert update.settings.radius == 12
    assert update.heatmap


def test_empty_viewport_gives_zero_statistics(controller, engine):
    """No properties in view: zero stats, no markers, no camera fit."""
    engine.drain()
    update = controller.on_viewport_change(EMPTY_OCEAN)

    assert update.properties == []
    assert update.statistics.total_count == 0
    assert update.statistics.popular_areas == []
    assert controller.markers.marker_ids == set()
    assert "fit_bounds" not in [c["op"] for c in engine.drain()]


def test_reset_restores_defaults_and_drops_bounds(controller):
    """Reset is equivalent to default settings with no viewport."""
    controller.on_viewport_change(NEW_YORK)
    controller.on_filter_settings_change(FilterSettings(price_range=(0, 1), heatmap=True))
    update = controller.on_reset()

    assert update.settings == FilterSettings()
    assert update.bounds is None
    assert controller.bounds is None
    assert _ids(update.properties) == [1, 2]
    assert controller.status is ControllerStatus.READY


def test_selection_reset_when_filtered_out(controller):
    """Selected property leaving the results forces the selection to None."""
    controller.on_viewport_change(LAGOS)
    assert controller.on_property_select(1)
    assert controller.selection.selected_id == 1

    controller.on_viewport_change(NEW_YORK)

    assert controller.selection.selected_id is None


def test_marker_click_and_deselect(controller):
    """Marker clicks select like the sidebar does; deselect closes the popup."""
    controller.on_viewport_change(LAGOS)

    assert controller.on_marker_click(2)
    assert controller.selection.popup_visible
    assert controller.on_deselect()
    assert not controller.selection.popup_visible


def test_selecting_filtered_out_property_is_ignored(controller):
    """Only ids in the current results can be selected."""
    controller.on_viewport_change(LAGOS)

    assert controller.on_property_select(3) is False
    assert controller.selection.selected_id is None


def test_subscribers_receive_updates_and_failures_are_isolated(controller):
    """A failing subscriber does not stop the others."""
    received = []

    def broken(update):
        raise RuntimeError("boom")

    controller.subscribe(broken)
    unsubscribe = controller.subscribe(received.append)

    controller.on_viewport_change(LAGOS)
    controller.on_property_select(1)
    unsubscribe()
    controller.on_viewport_change(NEW_YORK)

    assert len(received) == 2
    assert received[1].selection.selected_id == 1


def test_set_properties_replaces_candidates(controller):
    """A data source refresh re-derives everything."""
    controller.on_viewport_change(LAGOS)
    update = controller.set_properties(
        [PropertyRecord(id=10, raw_price="5 million", coordinates=Position(lat=6.5, lng=3.5))]
    )

    assert _ids(update.properties) == [10]
    assert controller.markers.marker_ids == {10}


def test_accept_sequence_drops_old_client_events(controller):
    """Client sequence numbers must increase."""
    assert controller.accept_sequence(None)
    assert controller.accept_sequence(5)
    assert not controller.accept_sequence(5)
    assert not controller.accept_sequence(3)
    assert controller.accept_sequence(6)


def test_async_stale_pass_never_overwrites_newer_result(controller):
    """A slow pass for an old viewport is discarded once a newer pass committed."""

    async def scenario():
        release_first = asyncio.Event()
        calls = []

        async def fake_threadpool(func, *args):
            calls.append(args)
            if len(calls) == 1:
                await release_first.wait()
            return func(*args)

        with patch("api.services.viewport_sync.run_in_threadpool", fake_threadpool):
            first = asyncio.create_task(controller.on_viewport_change_async(LAGOS))
            await asyncio.sleep(0)
            second = await controller.on_viewport_change_async(NEW_YORK)
            release_first.set()
            first_result = await first
        return first_result, second

    first_result, second = asyncio.run(scenario())

    assert first_result is None
    assert second is not None
    assert controller.snapshot().bounds == NEW_YORK
    assert controller.version == second.version
    assert _ids(controller.current_filtered) == []


def test_async_pass_commits_when_not_superseded(controller):
    """Without competition the async path behaves like the synchronous one."""
    update = asyncio.run(controller.on_viewport_change_async(LAGOS))

    assert update is not None
    assert _ids(update.properties) == [1, 2]


def test_camera_actions_leave_state_alone(controller, engine):
    """Fit and reset view only move the camera."""
    controller.on_viewport_change(LAGOS)
    version = controller.version
    engine.drain()

    assert controller.on_fit_to_results() is not None
    assert controller.on_reset_view() == Position(lat=6.5244, lng=3.3792)
    assert [c["op"] for c in engine.drain()] == ["fit_bounds", "fly_to"]
    assert controller.version == version
    assert controller.bounds == LAGOS


def test_fit_to_results_with_empty_results(controller, engine):
    controller.on_viewport_change(EMPTY_OCEAN)
    engine.drain()

    assert controller.on_fit_to_results() is None
    assert engine.drain() == []
