"""
Viewport synchronization: the single place that sequences filtering, statistics and markers.

Every viewport change, filter change or reset runs the same pass:

    filter -> aggregate -> reconcile markers -> notify subscribers

Each pass carries a version number. A pass only commits if its version is
newer than the last committed one, so a slow pass started for an old
viewport can never overwrite the result of a newer one.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from starlette.concurrency import run_in_threadpool

from models import (
    FilterSettings,
    MapStatistics,
    NormalizedProperty,
    Position,
    PropertyRecord,
    SelectionState,
    ViewportBounds,
)
from api.services.heatmap import compute_heatmap_cells
from api.services.map_engine import MapEngine
from api.services.marker_manager import MarkerLifecycleManager, ReconcileResult
from api.services.price_normalizer import normalize_properties
from api.services.property_filtering import filter_properties
from api.services.statistics import calculate_map_statistics

logger = logging.getLogger(__name__)


class ControllerStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


@dataclass(frozen=True)
class DerivedState:
    """Result of the pure part of a pass."""

    filtered: List[NormalizedProperty]
    statistics: MapStatistics
    heatmap: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class SearchUpdate:
    """What consumers (sidebar list, counters) receive after each change."""

    version: int
    status: ControllerStatus
    bounds: Optional[ViewportBounds]
    settings: FilterSettings
    properties: List[NormalizedProperty]
    statistics: MapStatistics
    selection: SelectionState
    heatmap: List[Dict[str, Any]] = field(default_factory=list)
    reconcile: Optional[ReconcileResult] = None


Listener = Callable[[SearchUpdate], None]


def derive_state(
    properties: Sequence[NormalizedProperty],
    bounds: Optional[ViewportBounds],
    settings: FilterSettings,
) -> DerivedState:
    """Filter and aggregate. Pure; safe to run off the event loop."""
    filtered = filter_properties(properties, bounds, settings.price_range)
    statistics = calculate_map_statistics(filtered)
    heatmap = compute_heatmap_cells(filtered, bounds) if settings.heatmap else []
    return DerivedState(filtered=filtered, statistics=statistics, heatmap=heatmap)


class ViewportSyncController:
    """Owns viewport bounds, filter settings and (through the marker manager) the selection."""

    def __init__(
        self,
        records: Iterable[PropertyRecord],
        engine: MapEngine,
        settings: Optional[FilterSettings] = None,
        marker_manager: Optional[MarkerLifecycleManager] = None,
    ):
        self.engine = engine
        self.markers = marker_manager or MarkerLifecycleManager(engine)
        self._properties: List[NormalizedProperty] = normalize_properties(records)
        self._status = ControllerStatus.UNINITIALIZED
        self._bounds: Optional[ViewportBounds] = None
        self._settings = settings or FilterSettings()
        self._listeners: List[Listener] = []

        self._issued_version = 0
        self._committed_version = 0
        self._last_client_sequence: Optional[int] = None

        # State reflected by the last committed pass
        self._view_bounds: Optional[ViewportBounds] = None
        self._view_settings = self._settings
        self._derived = DerivedState(filtered=[], statistics=MapStatistics())

        self.engine.set_layers(self._settings.heatmap, self._settings.clustering)
        self._recompute()

    # ------------------------------------------------------------------
    # Read-only views for consumers
    # ------------------------------------------------------------------

    @property
    def status(self) -> ControllerStatus:
        return self._status

    @property
    def bounds(self) -> Optional[ViewportBounds]:
        return self._bounds

    @property
    def settings(self) -> FilterSettings:
        return self._settings

    @property
    def version(self) -> int:
        return self._committed_version

    @property
    def properties(self) -> List[NormalizedProperty]:
        return list(self._properties)

    @property
    def current_filtered(self) -> List[NormalizedProperty]:
        return list(self._derived.filtered)

    @property
    def current_statistics(self) -> MapStatistics:
        return self._derived.statistics

    @property
    def selection(self) -> SelectionState:
        return self.markers.selection

    def snapshot(self, reconcile: Optional[ReconcileResult] = None) -> SearchUpdate:
        """Current committed state."""
        return SearchUpdate(
            version=self._committed_version,
            status=self._status,
            bounds=self._view_bounds,
            settings=self._view_settings,
            properties=list(self._derived.filtered),
            statistics=self._derived.statistics,
            selection=self.markers.selection,
            heatmap=list(self._derived.heatmap),
            reconcile=reconcile,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a consumer; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def accept_sequence(self, sequence: Optional[int]) -> bool:
        """
        Record a client-side event sequence number.

        Returns False for a sequence that is not newer than the last accepted
        one; such events must be dropped. Events without a sequence are always
        accepted.
        """
        if sequence is None:
            return True
        if self._last_client_sequence is not None and sequence <= self._last_client_sequence:
            logger.debug(
                "Dropping stale event sequence %d (last accepted %d)",
                sequence,
                self._last_client_sequence,
            )
            return False
        self._last_client_sequence = sequence
        return True

    def on_viewport_change(self, bounds: ViewportBounds) -> SearchUpdate:
        self._set_bounds(bounds)
        return self._recompute()

    def on_filter_settings_change(self, settings: FilterSettings) -> SearchUpdate:
        self._set_settings(settings)
        return self._recompute()

    def on_reset(self) -> SearchUpdate:
        """Restore default settings and forget the viewport."""
        self._set_settings(FilterSettings())
        self._bounds = None
        return self._recompute()

    def set_properties(self, records: Iterable[PropertyRecord]) -> SearchUpdate:
        """Replace the candidate set supplied by the data source."""
        self._properties = normalize_properties(records)
        return self._recompute()

    def on_property_select(self, property_id: int) -> bool:
        """Sidebar selection. Returns False when the id is not in the current results."""
        selected = self.markers.select(property_id)
        if selected:
            self._emit(self.snapshot())
        return selected

    def on_marker_click(self, property_id: int) -> bool:
        return self.on_property_select(property_id)

    def on_deselect(self) -> bool:
        deselected = self.markers.deselect()
        if deselected:
            self._emit(self.snapshot())
        return deselected

    def on_fit_to_results(self) -> Optional[ViewportBounds]:
        """Camera only: frame the current results. None when there is nothing to show."""
        return self.markers.fit_to_markers()

    def on_reset_view(self) -> Position:
        """Camera only: fly back to the default centre. Bounds follow from the next viewport event."""
        return self.markers.reset_view()

    def close(self) -> None:
        """Release every marker and drop subscribers."""
        self.markers.release_all()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Async variants for large collections
    # ------------------------------------------------------------------

    async def on_viewport_change_async(
        self, bounds: ViewportBounds
    ) -> Optional[SearchUpdate]:
        """
        Like on_viewport_change, but filters and aggregates in a worker thread.

        Returns None when a newer pass committed while this one was running.
        """
        self._set_bounds(bounds)
        return await self._recompute_async()

    async def on_filter_settings_change_async(
        self, settings: FilterSettings
    ) -> Optional[SearchUpdate]:
        self._set_settings(settings)
        return await self._recompute_async()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_bounds(self, bounds: ViewportBounds) -> None:
        self._bounds = bounds
        if self._status is ControllerStatus.UNINITIALIZED:
            logger.info("Viewport established; search session ready")
        self._status = ControllerStatus.READY

    def _set_settings(self, settings: FilterSettings) -> None:
        previous = self._settings
        self._settings = settings
        if (previous.heatmap, previous.clustering) != (
            settings.heatmap,
            settings.clustering,
        ):
            self.engine.set_layers(settings.heatmap, settings.clustering)

    def _next_version(self) -> int:
        self._issued_version += 1
        return self._issued_version

    def _pass_inputs(
        self,
    ) -> Tuple[int, List[NormalizedProperty], Optional[ViewportBounds], FilterSettings]:
        # Inputs are captured when the pass starts; later events cannot leak into it
        return self._next_version(), self._properties, self._bounds, self._settings

    def _recompute(self) -> SearchUpdate:
        version, properties, bounds, settings = self._pass_inputs()
        derived = derive_state(properties, bounds, settings)
        # A synchronous pass always holds the newest version
        return self._commit(version, bounds, settings, derived)

    async def _recompute_async(self) -> Optional[SearchUpdate]:
        version, properties, bounds, settings = self._pass_inputs()
        derived = await run_in_threadpool(derive_state, properties, bounds, settings)
        return self._commit(version, bounds, settings, derived)

    def _commit(
        self,
        version: int,
        bounds: Optional[ViewportBounds],
        settings: FilterSettings,
        derived: DerivedState,
    ) -> Optional[SearchUpdate]:
        if version <= self._committed_version:
            logger.debug(
                "Discarding stale pass %d (committed %d)", version, self._committed_version
            )
            return None

        self._committed_version = version
        self._view_bounds = bounds
        self._view_settings = settings
        self._derived = derived

        reconcile = self.markers.reconcile(derived.filtered)
        update = self.snapshot(reconcile)
        self._emit(update)
        return update

    def _emit(self, update: SearchUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception:
                logger.exception("Search update listener %r failed", listener)
