"""Scheduling module: tasks, their slots and the per-person schedule index."""

from fastapi import APIRouter


class SchedulingModule:
    """Task slot scheduling.

    Provides:
    - Task CRUD with slot booking and double-booking prevention
    - Extension requests with cascading approval
    - Per-person schedule index kept in sync with task slots
    - Free-time suggestions
    """

    @property
    def name(self) -> str:
        """Module name (unique identifier)."""
        return "scheduling"

    @property
    def description(self) -> str:
        """Module description (human-readable)."""
        return "Task slot booking, extensions and availability"

    def get_table_schemas(self) -> dict[str, str]:
        """Return table schemas for this module."""
        return {
            "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        assigner_id TEXT NOT NULL,
        receiver_id TEXT,
        task_name TEXT NOT NULL DEFAULT '',
        client_name TEXT,
        category TEXT,
        priority TEXT,
        time_spend TEXT,
        description TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'in_progress', 'completed', 'cancelled')),
        slots TEXT NOT NULL DEFAULT '[]',
        time_tracking TEXT NOT NULL DEFAULT '{}',
        is_archived INTEGER NOT NULL DEFAULT 0,
        archived_at TEXT,
        archived_by TEXT
    )""",
            "user_schedules": """CREATE TABLE IF NOT EXISTS user_schedules (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        user_id TEXT NOT NULL,
        task_id TEXT NOT NULL,
        slot_id TEXT NOT NULL,
        start_at TEXT NOT NULL,
        end_at TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'scheduled',
        task_status TEXT NOT NULL DEFAULT 'pending',
        UNIQUE (task_id, slot_id)
    )""",
        }

    def get_indexes(self) -> list[str]:
        """Return indexes for this module's tables."""
        return [
            "CREATE INDEX IF NOT EXISTS idx_tasks_assigner ON tasks(assigner_id)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_receiver ON tasks(receiver_id)",
            "CREATE INDEX IF NOT EXISTS idx_user_schedules_user_start ON user_schedules(user_id, start_at)",
            "CREATE INDEX IF NOT EXISTS idx_user_schedules_task ON user_schedules(task_id)",
        ]

    def get_router(self) -> APIRouter:
        """Return the REST router for tasks, extensions and availability."""
        from opsdesk.interface.tasks_router import router

        return router
