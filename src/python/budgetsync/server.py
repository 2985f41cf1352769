"""HTTP surface for the merge engine and the direct delete path."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Body, FastAPI, HTTPException

from budgetsync.__version__ import __version__
from budgetsync.authority import AuthoritativeStore
from budgetsync.exceptions import MalformedBatchError, NotFoundError
from budgetsync.merge import MergeEngine

logger = logging.getLogger(__name__)


def create_app(store: AuthoritativeStore) -> FastAPI:
    """Build the sync API around an open authoritative store."""
    app = FastAPI(title="budgetsync", version=__version__)
    engine = MergeEngine(store)

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/sync")
    def sync(payload: Any = Body(...)) -> dict[str, Any]:
        try:
            return engine.handle(payload)
        except MalformedBatchError as exc:
            raise HTTPException(
                status_code=422,
                detail={"message": str(exc), **exc.details},
            ) from exc

    @app.delete("/api/budgets/{budget_id}")
    def delete_budget(budget_id: str) -> dict[str, Any]:
        return _cascade_delete(store, "budgets", budget_id)

    @app.delete("/api/categories/{category_id}")
    def delete_category(category_id: str) -> dict[str, Any]:
        return _cascade_delete(store, "categories", category_id)

    return app


def _cascade_delete(store: AuthoritativeStore, collection: str, record_id: str) -> dict[str, Any]:
    try:
        store.admin_cascade_delete(collection, record_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"ok": True, "id": record_id}
