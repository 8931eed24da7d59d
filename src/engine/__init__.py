"""Merge, completion and persistence engine for co-authored documents.

DocumentSession lives in src.engine.session; it depends on src.sync, which
imports the event types from here.
"""

from src.engine.completion import CompletionTracker
from src.engine.events import (
    CommitFailed,
    ConnectivityChanged,
    ContentChanged,
    EventBus,
    SaveStatusChanged,
    SectionCompleted,
)
from src.engine.merge import MergeDecision
from src.engine.persistence import DocumentStore, PersistenceScheduler

__all__ = [
    "CommitFailed",
    "CompletionTracker",
    "ConnectivityChanged",
    "ContentChanged",
    "DocumentStore",
    "EventBus",
    "MergeDecision",
    "PersistenceScheduler",
    "SaveStatusChanged",
    "SectionCompleted",
]
