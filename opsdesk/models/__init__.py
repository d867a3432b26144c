"""Service result models."""
