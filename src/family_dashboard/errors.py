# src/family_dashboard/errors.py

from __future__ import annotations


class FamilyDashboardError(Exception):
    """Base class for errors raised by this package."""


class RepoError(FamilyDashboardError):
    """The authoritative task store (CRUD collaborator) failed or rejected a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(FamilyDashboardError):
    """Settings are missing or inconsistent for the requested wiring."""
