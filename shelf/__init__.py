"""Shelf Companion: catalog browsing and library reconciliation core"""
from .models import CatalogEntry, LibraryBook, BookStatus, CollectionContext, context_key
from .notifications import NotificationQueue, NotificationKind, Notification
from .reconcile import ContextCache, LibraryController, AddOptions, MutationOutcome, OutcomeResult

__all__ = [
    'CatalogEntry',
    'LibraryBook',
    'BookStatus',
    'CollectionContext',
    'context_key',
    'NotificationQueue',
    'NotificationKind',
    'Notification',
    'ContextCache',
    'LibraryController',
    'AddOptions',
    'MutationOutcome',
    'OutcomeResult'
]
