"""
Contract with the map rendering engine and a command-buffer implementation of it.

The map widget lives in the browser. The backend drives it through MapEngine;
CommandBufferMapEngine records each call as a command dict that the HTTP layer
returns to the client, which replays them against the real widget.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from models import Position, ViewportBounds

logger = logging.getLogger(__name__)

MarkerHandle = str


class MapEngine(ABC):
    """Operations the search session needs from a map renderer."""

    @abstractmethod
    def add_marker(self, property_id: int, position: Position) -> MarkerHandle:
        """Render a marker and return its handle."""

    @abstractmethod
    def remove_marker(self, handle: MarkerHandle) -> None:
        """Release a marker created by add_marker."""

    @abstractmethod
    def fit_bounds(self, bounds: ViewportBounds, padding: int, max_zoom: int) -> None:
        """Move the camera so ``bounds`` is fully visible."""

    @abstractmethod
    def fly_to(self, position: Position, zoom: int) -> None:
        """Center the camera on ``position``."""

    @abstractmethod
    def show_popup(self, property_id: int) -> None:
        """Open the popup for a property, replacing any open popup."""

    @abstractmethod
    def hide_popup(self) -> None:
        """Close the open popup, if any."""

    @abstractmethod
    def set_layers(self, heatmap: bool, clustering: bool) -> None:
        """Toggle the heatmap and clustering layers."""


class CommandBufferMapEngine(MapEngine):
    """MapEngine that queues commands for the browser client."""

    def __init__(self):
        self._commands: List[Dict[str, Any]] = []
        self._handle_counter = itertools.count(1)
        self._live_handles: Dict[MarkerHandle, int] = {}

    @property
    def live_markers(self) -> Dict[MarkerHandle, int]:
        """Handles not yet removed, mapped to their property id."""
        return dict(self._live_handles)

    def add_marker(self, property_id: int, position: Position) -> MarkerHandle:
        handle = f"marker-{next(self._handle_counter)}"
        self._live_handles[handle] = property_id
        self._commands.append(
            {
                "op": "add_marker",
                "handle": handle,
                "property_id": property_id,
                "lat": position.lat,
                "lng": position.lng,
            }
        )
        return handle

    def remove_marker(self, handle: MarkerHandle) -> None:
        if self._live_handles.pop(handle, None) is None:
            logger.warning("Removing unknown marker handle %s", handle)
        self._commands.append({"op": "remove_marker", "handle": handle})

    def fit_bounds(self, bounds: ViewportBounds, padding: int, max_zoom: int) -> None:
        self._commands.append(
            {
                "op": "fit_bounds",
                "bounds": bounds.model_dump(),
                "padding": padding,
                "max_zoom": max_zoom,
            }
        )

    def fly_to(self, position: Position, zoom: int) -> None:
        self._commands.append(
            {"op": "fly_to", "lat": position.lat, "lng": position.lng, "zoom": zoom}
        )

    def show_popup(self, property_id: int) -> None:
        self._commands.append({"op": "show_popup", "property_id": property_id})

    def hide_popup(self) -> None:
        self._commands.append({"op": "hide_popup"})

    def set_layers(self, heatmap: bool, clustering: bool) -> None:
        self._commands.append(
            {"op": "set_layers", "heatmap": heatmap, "clustering": clustering}
        )

    def pending(self) -> List[Dict[str, Any]]:
        """Commands queued since the last drain, without clearing them."""
        return list(self._commands)

    def drain(self) -> List[Dict[str, Any]]:
        """Return and clear the queued commands."""
        commands, self._commands = self._commands, []
        return commands
