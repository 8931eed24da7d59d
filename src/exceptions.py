"""
Custom exceptions for the section synchronization engine.
"""


class PlanSyncError(Exception):
    """Base exception for document synchronization errors."""

    pass


class UnknownSectionError(PlanSyncError, KeyError):
    """Raised when a section id is not part of the catalog."""

    pass


class SaveConflictError(PlanSyncError, ValueError):
    """Raised when a save targets a section not under the caller's edit lock."""

    pass


class SessionClosedError(PlanSyncError):
    """Raised when a disposed document session is used again."""

    pass


class DocumentNotFoundError(PlanSyncError):
    """Raised when the durable store has no document with the requested id."""

    pass


class ChannelClosedError(PlanSyncError):
    """Raised when a push channel subscription has been dropped."""

    pass
