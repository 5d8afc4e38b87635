"""
Application State

Single, explicit state object for the viewer: selection, display toggles and the
latest resolved position map. Setters are the only mutation path; listeners are
called with the state after every change.
"""

from typing import Callable, List, Optional

from orrery_service.catalog import DEFAULT_CATALOG, Catalog
from orrery_service.positions import Position, ResolvedPositions

Listener = Callable[["AppState"], None]


class AppState:
    """Viewer state shared by the rendering callbacks."""

    def __init__(self, catalog: Catalog = DEFAULT_CATALOG):
        self.catalog = catalog
        self._selected_body: Optional[str] = None
        self._audio_enabled = True
        self._auto_tour_active = False
        self._show_orbit_paths = True
        self._positions: Optional[ResolvedPositions] = None
        self._listeners: List[Listener] = []

    @property
    def selected_body(self) -> Optional[str]:
        return self._selected_body

    @property
    def audio_enabled(self) -> bool:
        return self._audio_enabled

    @property
    def auto_tour_active(self) -> bool:
        return self._auto_tour_active

    @property
    def show_orbit_paths(self) -> bool:
        return self._show_orbit_paths

    @property
    def positions(self) -> Optional[ResolvedPositions]:
        return self._positions

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_selected_body(self, body_id: Optional[str]) -> None:
        """Select a body by id; None clears the selection.

        Raises:
            UnknownBodyError: if the id is not in the catalog
        """
        if body_id is not None:
            self.catalog.get(body_id)
        if body_id != self._selected_body:
            self._selected_body = body_id
            self._notify()

    def clear_selected_body(self) -> None:
        self.set_selected_body(None)

    def toggle_audio(self) -> bool:
        self._audio_enabled = not self._audio_enabled
        self._notify()
        return self._audio_enabled

    def toggle_auto_tour(self) -> bool:
        self._auto_tour_active = not self._auto_tour_active
        self._notify()
        return self._auto_tour_active

    def toggle_orbit_paths(self) -> bool:
        self._show_orbit_paths = not self._show_orbit_paths
        self._notify()
        return self._show_orbit_paths

    def update_positions(self, positions: ResolvedPositions) -> None:
        """Swap in a whole new position map."""
        self._positions = positions
        self._notify()

    def selected_position(self) -> Optional[Position]:
        if self._selected_body is None or self._positions is None:
            return None
        return self._positions.get(self._selected_body)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
