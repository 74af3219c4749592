import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from app.core.errors import ExternalServiceError, ValidationError
from app.models.documents import DeleteStatus, SearchHit, SearchQuery, UploadOutcome
from app.services.ingestion.pipeline import IngestionPipeline
from app.services.search.gateway import QueryGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


def _service(request: Request, name: str):
    svc = getattr(request.app.state, name, None)
    if svc is None:
        raise HTTPException(status_code=500, detail=f"{name} not initialized.")
    return svc


@router.post("/upload", response_model=UploadOutcome)
async def upload_document(request: Request, file: UploadFile | None = File(None)) -> JSONResponse:
    """
    Upload a PDF, extract its text and index it.

    200 - indexed; 400 - empty or non-PDF file; 500 - processing or indexing failed.
    """
    pipeline: IngestionPipeline = _service(request, "ingestion_pipeline")

    outcome = await pipeline.ingest(file)

    if outcome.success:
        status_code = 200
    elif outcome.rejected:
        status_code = 400
    else:
        status_code = 500

    return JSONResponse(status_code=status_code, content=outcome.model_dump(by_alias=True))


@router.post("/search", response_model=list[SearchHit])
def search_documents(request: Request, body: SearchQuery) -> list[SearchHit]:
    gateway: QueryGateway = _service(request, "query_gateway")

    try:
        return gateway.search(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExternalServiceError as e:
        logger.error("Error searching documents with query %r: %s", body.query_text, e)
        raise HTTPException(status_code=500, detail=f"Error searching documents: {e}")


@router.delete("/{doc_id}")
def delete_document(request: Request, doc_id: str) -> JSONResponse:
    gateway: QueryGateway = _service(request, "query_gateway")

    status = gateway.delete_with_status(doc_id)

    if status is DeleteStatus.DELETED:
        return JSONResponse(status_code=200, content={"detail": f"Document {doc_id} deleted successfully"})
    if status is DeleteStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Document {doc_id} not found")

    raise HTTPException(status_code=500, detail=f"Error deleting document {doc_id}")
