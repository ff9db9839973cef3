"""Configuration errors."""


class ConfigError(Exception):
    """Raised when configuration data cannot be parsed, merged, or validated."""


class MissingDatabasePathError(ConfigError):
    """Raised when a command needs the metadata store but no location is set."""

    def __init__(self) -> None:
        super().__init__(
            "No database path configured. Set store.database_path, "
            "DIRSTAMP__STORE__DATABASE_PATH, DATABASE_PATH, or pass --database."
        )


__all__ = ["ConfigError", "MissingDatabasePathError"]
