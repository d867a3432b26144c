"""opsdesk - operations backend with a task slot scheduling engine."""
