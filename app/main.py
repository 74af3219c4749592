import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes.documents import router as documents_router
from app.api.routes.health import router as health_router
from app.core.config import settings
from app.core.logging import setup_logging
from app.services.ingestion.pdf_text import PdfTextExtractor
from app.services.ingestion.pipeline import IngestionPipeline
from app.services.search.gateway import QueryGateway
from app.services.search.index_client import AzureSearchIndex
from app.services.search.index_lifecycle import IndexLifecycle
from app.storage.files import LocalDocumentStore

setup_logging()
logger = logging.getLogger(__name__)


def build_services(app: FastAPI, index: AzureSearchIndex, store: LocalDocumentStore) -> None:
    """
    Wire every component explicitly and expose them on app.state.
    """
    lifecycle = IndexLifecycle(index, semantic=settings.SEARCH_SEMANTIC_ENABLED)

    app.state.document_store = store
    app.state.index_lifecycle = lifecycle
    app.state.ingestion_pipeline = IngestionPipeline(
        store=store,
        extractor=PdfTextExtractor(),
        index=index,
        lifecycle=lifecycle,
    )
    app.state.query_gateway = QueryGateway(index)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = LocalDocumentStore()
    build_services(app, AzureSearchIndex.from_settings(), store)
    logger.info(
        "Search index client ready: %s (index %s)", settings.SEARCH_ENDPOINT, settings.SEARCH_INDEX_NAME
    )

    # staged uploads are a cache, not part of any transaction
    if settings.UPLOAD_RETENTION_HOURS > 0:
        try:
            store.sweep_stale(settings.UPLOAD_RETENTION_HOURS * 3600)
        except OSError as e:
            logger.warning("Working storage sweep failed: %s", e)

    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.include_router(health_router)
app.include_router(documents_router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})

    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
