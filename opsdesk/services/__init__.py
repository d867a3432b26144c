"""Cross-cutting services."""
