"""Command-line interface package for TaskApp."""

__all__ = ["main"]


def main(*args, **kwargs):
    """Entry point that defers heavy imports until needed."""
    from .app import main as app_main

    return app_main(*args, **kwargs)
