from __future__ import annotations

import logging
from typing import Any

from app.core.config import settings
from app.core.errors import ExternalServiceError, SemanticModeUnavailableError, ValidationError
from app.models.documents import DeleteStatus, SearchHit, SearchQuery
from app.services.search.index_client import HIGHLIGHT_FIELD, AzureSearchIndex

logger = logging.getLogger(__name__)


def _excerpts(hit: dict[str, Any]) -> list[str]:
    """
    Semantic captions first, then content highlights. Both may be absent.
    """
    out: list[str] = []
    for cap in hit.get("@search.captions") or []:
        text = cap.get("text") if isinstance(cap, dict) else getattr(cap, "text", None)
        if text:
            out.append(str(text))
    if out:
        return out

    highlights = hit.get("@search.highlights") or {}
    return [str(h) for h in highlights.get(HIGHLIGHT_FIELD) or []]


def to_search_hit(hit: dict[str, Any]) -> SearchHit:
    return SearchHit(
        id=str(hit.get("id") or ""),
        file_name=str(hit.get("fileName") or ""),
        score=float(hit.get("@search.score") or 0.0),
        excerpts=_excerpts(hit),
    )


class QueryGateway:
    def __init__(self, index: AzureSearchIndex, *, supports_semantic_mode: bool | None = None):
        self.index = index
        self.supports_semantic_mode = (
            settings.SEARCH_SEMANTIC_ENABLED if supports_semantic_mode is None else supports_semantic_mode
        )

    def search(self, query: SearchQuery) -> list[SearchHit]:
        text = (query.query_text or "").strip()
        if not text:
            raise ValidationError("Search query cannot be empty")

        if query.top_count < 1:
            raise ValidationError("topCount must be at least 1")

        top = min(query.top_count, settings.SEARCH_MAX_TOP)
        semantic = query.use_semantic_mode and self.supports_semantic_mode

        if semantic:
            try:
                raw = self.index.query(text, top=top, semantic=True)
            except SemanticModeUnavailableError as e:
                logger.warning(
                    "Semantic search unavailable, falling back to standard search: %s", e
                )
                self.supports_semantic_mode = False
                raw = self.index.query(text, top=top, semantic=False)
        else:
            raw = self.index.query(text, top=top, semantic=False)

        hits = [to_search_hit(h) for h in raw]
        logger.info("Query %r returned %d hit(s)", text, len(hits))
        return hits

    def delete_with_status(self, doc_id: str) -> DeleteStatus:
        try:
            if self.index.get_document(doc_id) is None:
                logger.info("Document %s not found", doc_id)
                return DeleteStatus.NOT_FOUND

            results = self.index.delete_by_key([doc_id])
        except ExternalServiceError:
            logger.exception("Error deleting document %s", doc_id)
            return DeleteStatus.FAILED

        if results and all(r.succeeded for r in results):
            logger.info("Document %s deleted", doc_id)
            return DeleteStatus.DELETED

        logger.warning("Delete of document %s was not accepted: %s", doc_id, results)
        return DeleteStatus.FAILED

    def delete(self, doc_id: str) -> bool:
        return self.delete_with_status(doc_id) is DeleteStatus.DELETED
