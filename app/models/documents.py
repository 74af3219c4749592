import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class IndexedDocument:
    """
    One ingested file as stored in the search index.

    Field metadata drives the index schema (see index_client.build_index_schema):
        name        - field name in the index
        key         - document key
        searchable  - full-text searchable (analyzer optional)
        filterable / sortable / facetable - index attributes
    """

    file_name: str = field(
        metadata={
            "name": "fileName",
            "searchable": True,
            "filterable": True,
            "sortable": True,
            "facetable": True,
        }
    )
    file_type: str = field(metadata={"name": "fileType", "searchable": True, "filterable": True})
    content: str = field(metadata={"name": "content", "searchable": True, "analyzer": True})
    file_size_in_bytes: int = field(metadata={"name": "fileSizeInBytes", "filterable": True})
    uploaded_date: datetime = field(
        default_factory=_now,
        metadata={"name": "uploadedDate", "filterable": True, "sortable": True},
    )
    id: str = field(
        default_factory=_new_id,
        metadata={"name": "id", "key": True, "filterable": True},
    )

    def to_search_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "fileType": self.file_type,
            "content": self.content,
            "uploadedDate": self.uploaded_date.isoformat(),
            "fileSizeInBytes": self.file_size_in_bytes,
        }


@dataclass(frozen=True)
class BatchItemResult:
    key: str
    succeeded: bool
    status_code: int | None = None
    error_message: str | None = None


class DeleteStatus(str, Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchQuery(_CamelModel):
    query_text: Optional[str] = None
    use_semantic_mode: bool = True
    top_count: int = 10


class SearchHit(_CamelModel):
    id: str
    file_name: str
    score: float
    excerpts: list[str] = Field(default_factory=list)


class UploadOutcome(_CamelModel):
    file_name: str
    success: bool
    message: str
    id: Optional[str] = None

    # validation failure (client error) vs pipeline failure; not serialized
    rejected: bool = Field(default=False, exclude=True)
