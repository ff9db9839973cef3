"""Save and restore file timestamps of directories.

Subpackages:
    store: SQLAlchemy schema and transaction scopes over SQLite.
    snapshot: capture, restore, traversal, and capture log operations.
    config: YAML configuration with environment and CLI overrides.
"""

from importlib import metadata as _metadata

__all__ = ["__version__"]


def __getattr__(name: str):
    if name == "__version__":
        return _metadata.version("dirstamp")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
