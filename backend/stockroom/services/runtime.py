# Overview: Flask extension owning the per-application document store and projection.

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app

from .document_store import SqlDocumentStore
from .projection import InventoryView, Projection


@dataclass
class _RuntimeState:
    store: SqlDocumentStore
    projection: Projection


class InventoryRuntime:
    """
    Owns one store + projection per Flask app, stored in app.extensions.

    The projection connects lazily on first use: the documents table has to
    exist before the first resync can read it.
    """

    extension_name = "stockroom"

    def __init__(self, app: Flask | None = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions[self.extension_name] = self._build_state(app)

    def _build_state(self, app: Flask) -> _RuntimeState:
        store = SqlDocumentStore(commit_attempts=app.config.get("STORE_COMMIT_ATTEMPTS", 3))
        projection = Projection(store, seed_defaults=app.config.get("SEED_DEFAULT_CATEGORIES", True))
        return _RuntimeState(store=store, projection=projection)

    def _state(self) -> _RuntimeState:
        try:
            return current_app.extensions[self.extension_name]
        except KeyError:
            raise RuntimeError("InventoryRuntime is not initialised for this app") from None

    @property
    def store(self) -> SqlDocumentStore:
        return self._state().store

    @property
    def projection(self) -> Projection:
        projection = self._state().projection
        if not projection.connected:
            projection.connect()
        return projection

    def view(self) -> InventoryView:
        return self.projection.snapshot()

    def reconnect(self, collection: str | None = None) -> None:
        self.projection.reconnect(collection)

    def reset(self) -> None:
        """Drop the projection and subscribers and start from a fresh store (after reset-db)."""
        state = self._state()
        state.projection.disconnect()
        current_app.extensions[self.extension_name] = self._build_state(current_app)


inventory = InventoryRuntime()
