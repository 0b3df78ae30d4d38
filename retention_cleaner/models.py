"""
Shared data models for Retention Cleaner
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class TagSlot(str, Enum):
    """The two personal retention tag slots a folder can carry"""
    ARCHIVE = 'archive'
    POLICY = 'policy'


@dataclass
class FolderRef:
    """One folder as returned by enumeration (id + display name only)"""
    folder_id: str
    display_name: str
    handle: Any = None  # transport object, opaque to the core


@dataclass
class FolderPage:
    """One page of a deep folder traversal"""
    folders: List[FolderRef]
    more_available: bool


@dataclass
class BoundFolder:
    """Fresh read of a folder including its retention tag state"""
    folder_id: str
    tags: Dict[TagSlot, Optional[str]] = field(default_factory=dict)
    cleared: Set[TagSlot] = field(default_factory=set)
    handle: Any = None

    def retention_id(self, slot: TagSlot) -> Optional[str]:
        return self.tags.get(slot)


@dataclass
class RunSummary:
    """Counters accumulated over one run"""
    examined: int = 0
    found: int = 0
    changed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "folders_examined": self.examined,
            "tags_found": self.found,
            "folders_changed": self.changed
        }


@dataclass
class RemovalConfig:
    """Configuration for tag removal"""
    commit: bool = False
    retention_filter: Optional[Set[str]] = None


@dataclass
class ConnectionConfig:
    """Configuration for connecting to a mailbox"""
    mailbox: str
    url: Optional[str] = None
    allow_redirection: bool = False
    user: Optional[str] = None
    password: Optional[str] = None
    impersonate: bool = False
    ignore_certificate: bool = False
    archive: bool = False
