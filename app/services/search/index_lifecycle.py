import logging

from app.core.errors import ExternalServiceError, SemanticModeUnavailableError
from app.services.search.index_client import AzureSearchIndex

logger = logging.getLogger(__name__)


class IndexLifecycle:
    def __init__(self, index: AzureSearchIndex, *, semantic: bool = True):
        self.index = index
        self.semantic = semantic

    def _create(self) -> None:
        if self.semantic:
            try:
                self.index.create_or_update_index(self.index.schema(semantic=True))
                return
            except SemanticModeUnavailableError as e:
                logger.warning(
                    "Semantic configuration rejected, creating index without it: %s", e
                )
                self.semantic = False

        self.index.create_or_update_index(self.index.schema(semantic=False))

    def ensure_index_exists(self) -> bool:
        """
        Create the index if a metadata fetch reports it missing.
        False means indexing should not proceed.
        """
        name = self.index.index_name

        try:
            if self.index.get_index() is not None:
                logger.info("Index %s already exists", name)
                return True

            logger.info("Index %s does not exist, creating it", name)
            self._create()
        except ExternalServiceError:
            logger.exception("Error creating index %s", name)
            return False

        logger.info("Created index %s", name)
        return True
