"""Shared utilities for TaskApp."""
