"""Dependency injection container for Back Office Ledger.

Wires the SQLite repositories and the document service from settings.

Usage:
    from back_office_ledger.container import Container, get_container

    container = get_container()
    totals = container.document_service.document_totals(document_id)
"""

from functools import cached_property, lru_cache
from typing import TYPE_CHECKING

from back_office_ledger.config import Settings, get_settings
from back_office_ledger.logging_config import get_logger

if TYPE_CHECKING:
    from back_office_ledger.repositories.sqlite import (
        SQLiteDatabase,
        SQLiteDocumentRepository,
        SQLiteFulfillmentRecordRepository,
        SQLiteLineItemRepository,
        SQLiteMarkupConfigurationRepository,
    )
    from back_office_ledger.services.documents import DocumentServiceImpl

logger = get_logger(__name__)


class Container:
    """Dependency injection container.

    Everything is created on first access and cached. Tests build their own
    container with custom settings:

        test_settings = Settings(sqlite_path=":memory:")
        container = Container(settings=test_settings)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            sqlite_path=str(self._settings.sqlite_path),
            environment=self._settings.environment.value,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def database(self) -> "SQLiteDatabase":
        """The SQLite database, initialized on first access."""
        from back_office_ledger.repositories.sqlite import SQLiteDatabase

        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)

        db = SQLiteDatabase(db_path)
        db.initialize()
        return db

    @cached_property
    def document_repository(self) -> "SQLiteDocumentRepository":
        from back_office_ledger.repositories.sqlite import SQLiteDocumentRepository

        return SQLiteDocumentRepository(self.database)

    @cached_property
    def line_item_repository(self) -> "SQLiteLineItemRepository":
        from back_office_ledger.repositories.sqlite import SQLiteLineItemRepository

        return SQLiteLineItemRepository(self.database)

    @cached_property
    def fulfillment_repository(self) -> "SQLiteFulfillmentRecordRepository":
        from back_office_ledger.repositories.sqlite import SQLiteFulfillmentRecordRepository

        return SQLiteFulfillmentRecordRepository(self.database)

    @cached_property
    def markup_repository(self) -> "SQLiteMarkupConfigurationRepository":
        from back_office_ledger.repositories.sqlite import (
            SQLiteMarkupConfigurationRepository,
        )

        return SQLiteMarkupConfigurationRepository(self.database)

    @cached_property
    def document_service(self) -> "DocumentServiceImpl":
        """Service for resolving, totalling and advancing documents."""
        from back_office_ledger.services.documents import DocumentServiceImpl

        return DocumentServiceImpl(
            self.document_repository,
            self.line_item_repository,
            self.fulfillment_repository,
            markup_repo=self.markup_repository,
            settings=self._settings,
        )

    def close(self) -> None:
        """Close the database connection if one was opened."""
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Get the global container singleton, created with default settings."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Reset the global container. Used by tests."""
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()
