"""HTTP API for TaskApp analytics."""
