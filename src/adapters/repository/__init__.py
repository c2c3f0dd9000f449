"""Repository adapters - Database implementations."""

from .memory import (
    InMemoryPendingRegistrationRepository,
    InMemorySettingsRepository,
    InMemoryUserRepository,
)
from .postgres import (
    PostgresPendingRegistrationRepository,
    PostgresSettingsRepository,
    PostgresUserRepository,
    run_migrations,
)

__all__ = [
    "InMemoryPendingRegistrationRepository",
    "InMemorySettingsRepository",
    "InMemoryUserRepository",
    "PostgresPendingRegistrationRepository",
    "PostgresSettingsRepository",
    "PostgresUserRepository",
    "run_migrations",
]
