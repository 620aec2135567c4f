from fastapi import FastAPI
from catalog.api.routes import router as api_router
from catalog.config import IndexSettings
from catalog.db import Base, SessionLocal, engine
import catalog.models  # noqa: F401 ensure models are imported so tables are known
from catalog.query import QueryOrchestrator
from catalog.scheduler import create_scheduler
from catalog.search_index import build_search_index
from catalog.sync import IndexSyncer
from catalog.utils import logger


def bind_services(target: FastAPI, search_index, scheduler=None, session_factory=SessionLocal):
    """Attach the index client, syncer and orchestrator to `target.state`."""
    target.state.search_index = search_index
    target.state.scheduler = scheduler
    target.state.syncer = IndexSyncer(session_factory, search_index, scheduler=scheduler)
    target.state.orchestrator = QueryOrchestrator(search_index)
    return target.state.syncer


def create_app() -> FastAPI:
    app = FastAPI(title="Catalog Search")
    app.include_router(api_router)
    # usable before startup runs (e.g. TestClient without a lifespan)
    bind_services(app, None)

    @app.on_event("startup")
    def on_startup():
        # Ensure database tables are created on startup
        try:
            Base.metadata.create_all(bind=engine)
        except Exception:
            # migrations may own the schema; keep running
            logger.exception("create_all failed")
        search_index = build_search_index(IndexSettings.from_env())
        bind_services(app, search_index, scheduler=create_scheduler())

    @app.on_event("shutdown")
    def on_shutdown():
        scheduler = getattr(app.state, "scheduler", None)
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    return app


# create FastAPI instance
app = create_app()
