from __future__ import annotations

import logging
from pathlib import Path

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import (
    ExternalServiceError,
    ExtractionError,
    IndexUnavailableError,
    PersistenceError,
    UpsertPartialFailure,
    ValidationError,
)
from app.models.documents import IndexedDocument, UploadOutcome
from app.services.ingestion.pdf_text import PdfTextExtractor
from app.services.search.index_client import AzureSearchIndex
from app.services.search.index_lifecycle import IndexLifecycle
from app.storage.files import LocalDocumentStore, read_first_bytes, sniff_pdf

logger = logging.getLogger(__name__)

MSG_INDEXED = "Document uploaded and indexed successfully"
MSG_NOT_INDEXED = "Document was processed but could not be indexed"
MSG_INDEX_UNAVAILABLE = "Search index is unavailable; document was not indexed"


class IngestionPipeline:
    """
    Upload -> working storage -> text -> search index, one file per call.

    Steps run strictly in order and earlier steps are never rolled back.
    ingest() always returns an UploadOutcome; no exception escapes it.
    """

    def __init__(
        self,
        store: LocalDocumentStore,
        extractor: PdfTextExtractor,
        index: AzureSearchIndex,
        lifecycle: IndexLifecycle,
    ):
        self.store = store
        self.extractor = extractor
        self.index = index
        self.lifecycle = lifecycle

    async def validate(self, upload_file: UploadFile | None) -> None:
        if upload_file is None:
            raise ValidationError("No file uploaded")

        filename = upload_file.filename or ""
        if not filename.strip():
            raise ValidationError("No file uploaded")

        suffix = Path(filename).suffix.lower()
        if suffix not in settings.ALLOWED_EXTENSIONS:
            raise ValidationError("Only PDF files are supported")

        if upload_file.size is not None and upload_file.size > self.store.max_bytes:
            raise ValidationError(f"File exceeds max size {settings.MAX_UPLOAD_MB} MB.")

        first = await read_first_bytes(upload_file, 16)
        if not first:
            raise ValidationError("File is empty")

        if settings.VERIFY_PDF_MAGIC and not sniff_pdf(first):
            raise ValidationError(f"Magic-bytes verification failed for '{filename}'.")

    def extract(self, file_path: Path, file_name: str) -> str:
        try:
            return self.extractor.extract_text(file_path)
        except ExtractionError as e:
            # indexed anyway, with the reason as content
            logger.error("Error extracting text from %s: %s", file_name, e)
            return f"Error extracting text: {e}\n"

    def upsert(self, document: IndexedDocument) -> None:
        results = self.index.upsert([document.to_search_document()])
        failed = [r.key for r in results if not r.succeeded]
        if not results or failed:
            raise UpsertPartialFailure(f"Failed to index document {document.id}", failed_keys=failed)

    async def ingest(self, upload_file: UploadFile | None) -> UploadOutcome:
        file_name = (upload_file.filename if upload_file is not None else None) or ""

        try:
            await self.validate(upload_file)
            return await self._run(upload_file, file_name)
        except ValidationError as e:
            logger.info("Rejected upload %r: %s", file_name, e)
            return UploadOutcome(file_name=file_name, success=False, message=str(e), rejected=True)
        except PersistenceError as e:
            logger.error("Error saving document %s: %s", file_name, e)
            return UploadOutcome(
                file_name=file_name, success=False, message=f"Error saving document: {e}"
            )
        except Exception as e:
            logger.exception("Error processing document %s", file_name)
            return UploadOutcome(
                file_name=file_name, success=False, message=f"Error processing document: {e}"
            )

    async def _run(self, upload_file: UploadFile, file_name: str) -> UploadOutcome:
        saved = await self.store.save(upload_file)

        content = await run_in_threadpool(self.extract, Path(saved.stored_path), file_name)

        document = IndexedDocument(
            file_name=file_name,
            file_type=settings.FILE_TYPE_TAG,
            content=content,
            file_size_in_bytes=upload_file.size if upload_file.size is not None else saved.size_bytes,
        )

        try:
            if not await run_in_threadpool(self.lifecycle.ensure_index_exists):
                raise IndexUnavailableError(MSG_INDEX_UNAVAILABLE)
            await run_in_threadpool(self.upsert, document)
        except IndexUnavailableError:
            logger.error("Index unavailable, document %s (%s) not indexed", document.id, file_name)
            return UploadOutcome(file_name=file_name, success=False, message=MSG_INDEX_UNAVAILABLE)
        except (UpsertPartialFailure, ExternalServiceError) as e:
            logger.warning("Failed to index document %s (%s): %s", document.id, file_name, e)
            return UploadOutcome(file_name=file_name, success=False, message=MSG_NOT_INDEXED)

        logger.info("Document %s (%s) indexed successfully", document.id, file_name)
        return UploadOutcome(id=document.id, file_name=file_name, success=True, message=MSG_INDEXED)
