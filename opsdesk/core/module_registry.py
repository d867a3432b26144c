"""Process-wide registry of feature modules.

``main.register_modules()`` fills it at import time; the schema layer and the
FastAPI app read tables, indexes and routers back out of it.
"""

from opsdesk.core.module import Module


class ModuleRegistry:
    """Registered modules keyed by name."""

    def __init__(self) -> None:
        self.modules: dict[str, Module] = {}

    def add(self, module: Module) -> None:
        """Register a module under its name.

        Raises:
            ValueError: If the name is already taken
        """
        if module.name in self.modules:
            msg = f"Module '{module.name}' is already registered"
            raise ValueError(msg)
        self.modules[module.name] = module

    def table_schemas(self) -> dict[str, str]:
        """Merge every module's CREATE TABLE statements, keyed by table name.

        Raises:
            ValueError: If two modules declare the same table
        """
        tables: dict[str, str] = {}
        for module in self.modules.values():
            for table, ddl in module.get_table_schemas().items():
                if table in tables:
                    msg = f"Duplicate table schema '{table}' from module '{module.name}'"
                    raise ValueError(msg)
                tables[table] = ddl
        return tables

    def indexes(self) -> list[str]:
        """CREATE INDEX statements of every module, in registration order."""
        return [ddl for module in self.modules.values() for ddl in module.get_indexes()]


_registry = ModuleRegistry()


def register_module(module: Module) -> None:
    """Add a module to the process-wide registry.

    Raises:
        ValueError: If a module with the same name is already registered
    """
    _registry.add(module)


def get_modules() -> dict[str, Module]:
    """Snapshot of the registered modules keyed by name."""
    return dict(_registry.modules)


def get_all_table_schemas() -> dict[str, str]:
    """CREATE TABLE statements of every registered module, keyed by table name.

    Raises:
        ValueError: If two modules declare the same table
    """
    return _registry.table_schemas()


def get_all_indexes() -> list[str]:
    """CREATE INDEX statements of every registered module."""
    return _registry.indexes()
