"""SQLite schema management (code-first, driven by registered modules)."""

import logging

from opsdesk.core import db_client
from opsdesk.core.module_registry import get_all_indexes, get_all_table_schemas


logger = logging.getLogger(__name__)


async def init_db(*, db_path: str | None = None) -> None:
    """Create every registered module's tables and indexes (idempotent)."""
    conn = await db_client.get_connection(db_path=db_path)

    schemas = get_all_table_schemas()
    for table_name, ddl in schemas.items():
        await conn.execute(ddl)
        logger.debug("Ensured table", extra={"table": table_name})

    for index_ddl in get_all_indexes():
        await conn.execute(index_ddl)

    await conn.commit()
    logger.info("Database schema initialized", extra={"tables": sorted(schemas)})
