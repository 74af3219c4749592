class DocumentServiceError(Exception):
    """Base class for every failure raised by the document services."""


class ValidationError(DocumentServiceError):
    """Bad or missing input. Raised before any external service is touched."""


class PersistenceError(DocumentServiceError):
    """Writing the upload to working storage failed."""


class ExtractionError(DocumentServiceError):
    """The PDF could not be read. Non-fatal for ingestion."""


class IndexUnavailableError(DocumentServiceError):
    """The search index could not be found or created."""


class UpsertPartialFailure(DocumentServiceError):
    """At least one item of an index batch was not accepted."""

    def __init__(self, message: str, failed_keys: list[str]):
        super().__init__(message)
        self.failed_keys = failed_keys


class ExternalServiceError(DocumentServiceError):
    """Network, auth or service fault reported by the search service."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SemanticModeUnavailableError(ExternalServiceError):
    """The index tier or configuration does not support semantic queries."""
