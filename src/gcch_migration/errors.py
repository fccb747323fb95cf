"""Exception types shared across the migration tooling."""

from typing import Optional


class MigrationError(RuntimeError):
    pass


class ConfigError(MigrationError):
    pass


class ConnectionFailure(MigrationError):
    """Raised when a tenant or mail session cannot be established. Always fatal."""
    pass


class DatasetError(MigrationError):
    pass


class GraphError(MigrationError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ExchangeError(MigrationError):
    pass
