"""
Marker lifecycle: keep rendered markers in step with the filtered properties and own the selection.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from config import (
    DEFAULT_LATITUDE,
    DEFAULT_LONGITUDE,
    FIT_BOUNDS_MAX_ZOOM,
    FIT_BOUNDS_PADDING,
    FLY_TO_ZOOM,
    RESET_VIEW_ZOOM,
)
from models import NormalizedProperty, Position, SelectionState, ViewportBounds
from api.services.map_engine import MapEngine, MarkerHandle
from api.services.property_filtering import bounding_box

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass, by property id."""

    added: List[int] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)
    kept: List[int] = field(default_factory=list)
    moved: List[int] = field(default_factory=list)
    fitted_bounds: Optional[ViewportBounds] = None

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class MarkerLifecycleManager:
    """
    Owns the marker handles and the selection for one search session.

    Markers map 1:1 to the ids of the last reconciled collection. Stale
    markers are always released before new ones are created because the map
    engine never frees abandoned handles on its own.
    """

    def __init__(
        self,
        engine: MapEngine,
        fit_padding: int = FIT_BOUNDS_PADDING,
        fit_max_zoom: int = FIT_BOUNDS_MAX_ZOOM,
        fly_to_zoom: int = FLY_TO_ZOOM,
    ):
        self.engine = engine
        self.fit_padding = fit_padding
        self.fit_max_zoom = fit_max_zoom
        self.fly_to_zoom = fly_to_zoom
        self._markers: Dict[int, MarkerHandle] = {}
        self._properties: Dict[int, NormalizedProperty] = {}
        self._selection = SelectionState()

    @property
    def selection(self) -> SelectionState:
        return self._selection

    @property
    def selected_id(self) -> Optional[int]:
        return self._selection.selected_id

    @property
    def marker_ids(self) -> Set[int]:
        return set(self._markers)

    @property
    def markers(self) -> Dict[int, MarkerHandle]:
        return dict(self._markers)

    def reconcile(self, filtered: Sequence[NormalizedProperty]) -> ReconcileResult:
        """
        Bring the rendered markers in line with ``filtered``.

        Order of effects: drop the selection if its property left, release
        markers whose ids left (or whose position moved), then create markers
        for new ids. Untouched ids keep their existing handles. When the id
        set changed and is non-empty, the camera is fitted to all markers.

        Args:
            filtered: The new filtered collection

        Returns:
            ReconcileResult describing what happened
        """
        incoming = {prop.id: prop for prop in filtered}
        result = ReconcileResult()

        if self.selected_id is not None and self.selected_id not in incoming:
            logger.debug("Selected property %s left the result set", self.selected_id)
            self._clear_selection()

        for property_id in list(self._markers):
            if property_id not in incoming:
                self.engine.remove_marker(self._markers.pop(property_id))
                result.removed.append(property_id)
            elif incoming[property_id].position != self._properties[property_id].position:
                self.engine.remove_marker(self._markers.pop(property_id))
                result.moved.append(property_id)

        for prop in filtered:
            if prop.id in self._markers:
                result.kept.append(prop.id)
                continue
            self._markers[prop.id] = self.engine.add_marker(prop.id, prop.position)
            if prop.id not in result.moved:
                result.added.append(prop.id)

        self._properties = incoming

        if result.changed and filtered:
            result.fitted_bounds = self.fit_to(filtered)

        if result.added or result.removed or result.moved:
            logger.debug(
                "Reconciled markers: +%d -%d ~%d =%d",
                len(result.added),
                len(result.removed),
                len(result.moved),
                len(result.kept),
            )
        return result

    def fit_to(
        self, properties: Sequence[NormalizedProperty]
    ) -> Optional[ViewportBounds]:
        """Ask the engine to show every given property; no-op when empty."""
        box = bounding_box(prop.position for prop in properties)
        if box is None:
            return None
        self.engine.fit_bounds(box, padding=self.fit_padding, max_zoom=self.fit_max_zoom)
        return box

    def fit_to_markers(self) -> Optional[ViewportBounds]:
        """Frame every property that currently has a marker."""
        return self.fit_to(list(self._properties.values()))

    def reset_view(
        self, center: Optional[Position] = None, zoom: int = RESET_VIEW_ZOOM
    ) -> Position:
        """Fly back to the default map centre."""
        center = center or Position(lat=DEFAULT_LATITUDE, lng=DEFAULT_LONGITUDE)
        self.engine.fly_to(center, zoom=zoom)
        return center

    def select(self, property_id: int) -> bool:
        """
        Select a property that currently has a marker.

        Returns False and leaves the selection untouched when the id is not
        part of the current collection.
        """
        prop = self._properties.get(property_id)
        if prop is None:
            logger.debug("Ignoring selection of %s: not in current results", property_id)
            return False

        previous = self.selected_id
        if previous != property_id:
            if previous is not None:
                self.engine.hide_popup()
            self.engine.show_popup(property_id)
            self._selection = SelectionState(selected_id=property_id)

        self.engine.fly_to(prop.position, zoom=self.fly_to_zoom)
        return True

    def deselect(self) -> bool:
        """Clear the selection. Returns False if nothing was selected."""
        if self.selected_id is None:
            return False
        self._clear_selection()
        return True

    def release_all(self) -> None:
        """Remove every marker and the popup (session teardown)."""
        if self.selected_id is not None:
            self._clear_selection()
        for handle in self._markers.values():
            self.engine.remove_marker(handle)
        self._markers = {}
        self._properties = {}

    def _clear_selection(self) -> None:
        self.engine.hide_popup()
        self._selection = SelectionState()
