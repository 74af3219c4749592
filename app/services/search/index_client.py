from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any

from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError
from azure.search.documents import SearchClient
from azure.search.documents.indexes import SearchIndexClient
from azure.search.documents.indexes.models import (
    SearchableField,
    SearchField,
    SearchFieldDataType,
    SearchIndex,
    SemanticConfiguration,
    SemanticField,
    SemanticPrioritizedFields,
    SemanticSearch,
    SimpleField,
)

from app.core.config import settings
from app.core.errors import ExternalServiceError, SemanticModeUnavailableError
from app.models.documents import BatchItemResult, IndexedDocument

logger = logging.getLogger(__name__)

KEY_FIELD = "id"
SELECT_FIELDS = ["id", "fileName"]
HIGHLIGHT_FIELD = "content"

_EDM_TYPES: dict[type, str] = {
    str: SearchFieldDataType.String,
    int: SearchFieldDataType.Int64,
    float: SearchFieldDataType.Double,
    bool: SearchFieldDataType.Boolean,
    datetime: SearchFieldDataType.DateTimeOffset,
}


def build_index_fields(analyzer_name: str | None = None) -> list[SearchField]:
    """
    Derive the index fields from IndexedDocument's dataclass field metadata.
    """
    analyzer = analyzer_name or settings.CONTENT_ANALYZER
    type_hints = {f.name: f.type for f in dataclasses.fields(IndexedDocument)}
    out: list[SearchField] = []

    for f in dataclasses.fields(IndexedDocument):
        meta = f.metadata
        common = {
            "name": meta.get("name", f.name),
            "filterable": bool(meta.get("filterable", False)),
            "sortable": bool(meta.get("sortable", False)),
            "facetable": bool(meta.get("facetable", False)),
        }

        if meta.get("searchable"):
            extra = {"analyzer_name": analyzer} if meta.get("analyzer") else {}
            # searchable fields are always Edm.String
            out.append(SearchableField(**common, **extra))
        else:
            edm = _EDM_TYPES[type_hints[f.name]]
            out.append(SimpleField(type=edm, key=bool(meta.get("key", False)), **common))

    return out


def build_index_schema(
    index_name: str,
    *,
    semantic_configuration: str | None = None,
    analyzer_name: str | None = None,
) -> SearchIndex:
    semantic_search = None
    if semantic_configuration:
        semantic_search = SemanticSearch(
            configurations=[
                SemanticConfiguration(
                    name=semantic_configuration,
                    prioritized_fields=SemanticPrioritizedFields(
                        title_field=SemanticField(field_name="fileName"),
                        content_fields=[SemanticField(field_name="content")],
                    ),
                )
            ]
        )

    return SearchIndex(
        name=index_name,
        fields=build_index_fields(analyzer_name),
        semantic_search=semantic_search,
    )


def _to_batch_results(results: Any) -> list[BatchItemResult]:
    return [
        BatchItemResult(
            key=r.key,
            succeeded=bool(r.succeeded),
            status_code=r.status_code,
            error_message=r.error_message,
        )
        for r in results
    ]


def _is_semantic_unsupported(e: HttpResponseError) -> bool:
    return e.status_code == 400 and "semantic" in str(e).lower()


class AzureSearchIndex:
    """
    Thin adapter over the Azure AI Search SDK clients.

    Every SDK fault leaves this class as ExternalServiceError, so callers
    never depend on azure.core exception types.
    """

    def __init__(
        self,
        index_client: SearchIndexClient,
        search_client: SearchClient,
        index_name: str,
        semantic_configuration: str | None = None,
    ):
        self.index_client = index_client
        self.search_client = search_client
        self.index_name = index_name
        self.semantic_configuration = semantic_configuration

    @classmethod
    def from_settings(cls) -> "AzureSearchIndex":
        credential = AzureKeyCredential(settings.SEARCH_ADMIN_KEY)
        return cls(
            index_client=SearchIndexClient(settings.SEARCH_ENDPOINT, credential),
            search_client=SearchClient(settings.SEARCH_ENDPOINT, settings.SEARCH_INDEX_NAME, credential),
            index_name=settings.SEARCH_INDEX_NAME,
            semantic_configuration=settings.SEARCH_SEMANTIC_CONFIGURATION,
        )

    def schema(self, *, semantic: bool) -> SearchIndex:
        return build_index_schema(
            self.index_name,
            semantic_configuration=self.semantic_configuration if semantic else None,
        )

    def get_index(self) -> SearchIndex | None:
        try:
            return self.index_client.get_index(self.index_name)
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            raise ExternalServiceError(
                f"Cannot read index '{self.index_name}': {e}",
                status_code=getattr(e, "status_code", None),
            ) from e

    def create_or_update_index(self, index: SearchIndex) -> None:
        try:
            self.index_client.create_or_update_index(index)
        except HttpResponseError as e:
            if index.semantic_search is not None and _is_semantic_unsupported(e):
                raise SemanticModeUnavailableError(str(e), status_code=e.status_code) from e
            raise ExternalServiceError(
                f"Cannot create index '{index.name}': {e}", status_code=e.status_code
            ) from e
        except AzureError as e:
            raise ExternalServiceError(
                f"Cannot create index '{index.name}': {e}",
                status_code=getattr(e, "status_code", None),
            ) from e

    def upsert(self, documents: list[dict[str, Any]]) -> list[BatchItemResult]:
        try:
            results = self.search_client.merge_or_upload_documents(documents=documents)
        except AzureError as e:
            raise ExternalServiceError(
                f"Upsert failed: {e}", status_code=getattr(e, "status_code", None)
            ) from e

        return _to_batch_results(results)

    def query(self, text: str, *, top: int, semantic: bool) -> list[dict[str, Any]]:
        """
        Run a query and materialize every hit (the SDK pages lazily, so
        errors surface while iterating).
        """
        kwargs: dict[str, Any] = {
            "search_text": text,
            "top": top,
            "include_total_count": True,
            "select": SELECT_FIELDS,
            "highlight_fields": HIGHLIGHT_FIELD,
        }
        if semantic:
            kwargs.update(
                query_type="semantic",
                semantic_configuration_name=self.semantic_configuration,
                query_caption="extractive",
            )
        else:
            kwargs["query_type"] = "simple"

        try:
            return [dict(hit) for hit in self.search_client.search(**kwargs)]
        except HttpResponseError as e:
            if semantic and _is_semantic_unsupported(e):
                raise SemanticModeUnavailableError(str(e), status_code=e.status_code) from e
            raise ExternalServiceError(f"Search failed: {e}", status_code=e.status_code) from e
        except AzureError as e:
            raise ExternalServiceError(f"Search failed: {e}") from e

    def get_document(self, key: str) -> dict[str, Any] | None:
        try:
            return self.search_client.get_document(key=key, selected_fields=SELECT_FIELDS)
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            raise ExternalServiceError(
                f"Lookup of {key} failed: {e}", status_code=getattr(e, "status_code", None)
            ) from e

    def delete_by_key(self, keys: list[str]) -> list[BatchItemResult]:
        try:
            results = self.search_client.delete_documents(documents=[{KEY_FIELD: k} for k in keys])
        except AzureError as e:
            raise ExternalServiceError(
                f"Delete failed: {e}", status_code=getattr(e, "status_code", None)
            ) from e

        return _to_batch_results(results)
