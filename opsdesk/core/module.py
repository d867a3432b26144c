"""Interface a feature module implements to plug into opsdesk."""

from typing import Protocol

from fastapi import APIRouter


class Module(Protocol):
    """A feature that owns tables, their indexes and an HTTP router."""

    @property
    def name(self) -> str:
        """Unique registry key."""
        ...

    @property
    def description(self) -> str: ...

    def get_table_schemas(self) -> dict[str, str]:
        """CREATE TABLE IF NOT EXISTS statements keyed by table name."""
        ...

    def get_indexes(self) -> list[str]:
        """CREATE INDEX IF NOT EXISTS statements for the module's tables."""
        ...

    def get_router(self) -> APIRouter: ...
