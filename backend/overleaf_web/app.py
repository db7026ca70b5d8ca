"""FastAPI application setup for the Overleaf web backend."""

from __future__ import annotations

from fastapi import FastAPI

from overleaf_web.api.dependencies import (
    get_app_settings,
    get_database,
    get_learn_manager,
    get_linked_file_manager,
    get_open_in_overleaf_manager,
)
from overleaf_web.api.errors import register_exception_handlers
from overleaf_web.api.routes_admin import router as admin_router
from overleaf_web.api.routes_learn import router as learn_router
from overleaf_web.api.routes_linked_file import router as linked_file_router
from overleaf_web.api.routes_open_in_overleaf import router as open_in_overleaf_router
from overleaf_web.core.logging import configure_logging

configure_logging()

app = FastAPI(
    title="Overleaf Web",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url=None,
)
register_exception_handlers(app)

app.include_router(linked_file_router, prefix="", tags=["linked-files"])
app.include_router(open_in_overleaf_router, prefix="", tags=["open-in-overleaf"])
app.include_router(learn_router, prefix="", tags=["learn"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons and start the learn image sweeper."""
    get_app_settings()
    get_database()
    get_linked_file_manager()
    get_open_in_overleaf_manager()
    get_learn_manager().start()


@app.on_event("shutdown")
async def shutdown() -> None:
    get_learn_manager().stop()
