"""
Error types raised by Retention Cleaner
"""

from typing import List, Optional


class RetentionCleanerError(Exception):
    """Base class for all errors raised by this package"""

    # partial RunSummary, attached when the error escapes TagRemover.process
    summary = None


class MailboxConnectionError(RetentionCleanerError):
    """The session to the mail service could not be established"""


class TransportError(RetentionCleanerError):
    """A call to the mail service failed (page fetch, bind, path lookup)"""


class TraversalError(TransportError):
    """Folder enumeration aborted; `partial` holds what arrived before the failure"""

    def __init__(self, message: str, partial: Optional[List] = None):
        super().__init__(message)
        self.partial = partial or []


class TagMutationError(RetentionCleanerError):
    """Clearing a tag on the in-memory folder failed"""


class PersistError(RetentionCleanerError):
    """Saving a folder after clearing its tags failed"""

    def __init__(self, message: str, folder_id: str = None, summary=None):
        super().__init__(message)
        self.folder_id = folder_id
        self.summary = summary
