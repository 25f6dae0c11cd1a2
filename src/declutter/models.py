"""Data models for declutter."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def format_size(size_bytes: int) -> str:
    """Human-readable size string (decimal units like macOS)."""
    if size_bytes >= 1000**3:
        return f"{size_bytes / (1000**3):.1f} GB"
    elif size_bytes >= 1000**2:
        return f"{size_bytes / (1000**2):.1f} MB"
    elif size_bytes >= 1000:
        return f"{size_bytes / 1000:.1f} KB"
    else:
        return f"{size_bytes} B"


class RiskLevel(str, Enum):
    """Risk level for cleanup categories."""

    SAFE = "safe"  # No data loss, auto-recoverable
    REVIEW = "review"  # Manual recovery, user judgment needed
    RISKY = "risky"  # Potential data loss, expert knowledge required


class ScanMode(str, Enum):
    """How a category walks its candidate roots."""

    CHILDREN = "children"  # One entry per immediate child of each root
    DEEP = "deep"  # One entry per regular file found recursively
    ROOT = "root"  # The root itself is a single entry


class CategoryRule(BaseModel):
    """Declarative scan rule for one cleanup category."""

    id: str = Field(..., description="Unique identifier for the category")
    name: str = Field(..., description="Human-readable name")
    paths: list[str] = Field(
        default_factory=list,
        description="Candidate roots (supports ~ expansion and trailing wildcards)",
    )
    mode: ScanMode = Field(default=ScanMode.CHILDREN, description="Traversal mode")
    min_size_bytes: int = Field(default=1, description="Minimum size to include an entry")
    include_hidden: bool = Field(default=False, description="Include dot-files")
    extensions: list[str] = Field(
        default_factory=list,
        description="Lower-case suffixes (e.g. '.dmg') that files must match, if any",
    )
    exclude_names: list[str] = Field(
        default_factory=list,
        description="Child or directory names never included or descended into",
    )
    orphan_aware: bool = Field(
        default=False,
        description="Flag entries whose owning identifier is not installed or running",
    )
    orphans_only: bool = Field(
        default=False,
        description="Only report entries that are orphaned (requires orphan_aware)",
    )
    owner_from_name: bool = Field(
        default=False,
        description="Use the entry name as its owning application identifier",
    )
    enabled: bool = Field(
        default=True,
        description="Policy gate; disabled categories always scan empty",
    )
    special: Optional[str] = Field(
        None, description="Name of a special-case scan routine, if any"
    )
    risk_level: RiskLevel = Field(default=RiskLevel.SAFE)
    description: str = Field(default="", description="What this category contains")
    consequences: str = Field(default="", description="What happens if deleted")


class Entry(BaseModel):
    """A single classified filesystem path.

    ``path`` and ``size_bytes`` are frozen: a size is recorded once at scan
    time and only a fresh scan produces a new value.
    """

    path: str = Field(..., frozen=True)
    display_name: str
    size_bytes: int = Field(..., ge=0, frozen=True)
    category: str
    is_directory: bool = False
    is_selected: bool = True
    group_id: Optional[str] = None
    is_orphaned: bool = False
    owner: Optional[str] = None

    @property
    def size_human(self) -> str:
        return format_size(self.size_bytes)

    @property
    def name(self) -> str:
        return Path(self.path).name


class DuplicateGroup(BaseModel):
    """Two or more files sharing identical content.

    The first member is the retained copy; every other member is reclaimable.
    """

    content_hash: str
    members: list[Entry]

    @field_validator("members")
    @classmethod
    def _at_least_two(cls, members: list[Entry]) -> list[Entry]:
        if len(members) < 2:
            raise ValueError("a duplicate group needs at least two members")
        return members

    @property
    def retained(self) -> Entry:
        return self.members[0]

    @property
    def reclaimable(self) -> list[Entry]:
        return self.members[1:]

    @property
    def size_bytes(self) -> int:
        return self.members[0].size_bytes

    @property
    def total_size(self) -> int:
        return sum(m.size_bytes for m in self.members)

    @property
    def wasted_size(self) -> int:
        return self.total_size - self.retained.size_bytes


class AppIdentity(BaseModel):
    """Normalized identifiers of installed, running and safe-listed applications."""

    bundle_identifier_aliases: set[str] = Field(default_factory=set)
    display_name_aliases: set[str] = Field(default_factory=set)
    complete: bool = True

    @property
    def aliases(self) -> set[str]:
        return self.bundle_identifier_aliases | self.display_name_aliases


class ScanStatus(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScanSession(BaseModel):
    """In-memory results and progress of one scan pass.

    Only the coordinator that owns a session mutates it.
    """

    entries_by_category: dict[str, list[Entry]] = Field(default_factory=dict)
    duplicate_groups: list[DuplicateGroup] = Field(default_factory=list)
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    status: ScanStatus = ScanStatus.IDLE
    current_path: str = ""
    completed_categories: list[str] = Field(default_factory=list)
    partial_categories: list[str] = Field(default_factory=list)
    retained_paths: set[str] = Field(default_factory=set)
    total_bytes: int = 0
    freed_bytes: int = 0
    started_at: datetime = Field(default_factory=datetime.now)

    def entries(self, category: str) -> list[Entry]:
        return self.entries_by_category.get(category, [])

    def all_entries(self) -> list[Entry]:
        return [e for entries in self.entries_by_category.values() for e in entries]

    def selected_entries(self, category: str | None = None) -> list[Entry]:
        pool = self.entries(category) if category else self.all_entries()
        return [e for e in pool if e.is_selected]

    @property
    def selected_bytes(self) -> int:
        return sum(e.size_bytes for e in self.selected_entries())

    def find_entry(self, path: str) -> Entry | None:
        for entry in self.all_entries():
            if entry.path == path:
                return entry
        return None

    def add_entries(self, category: str, entries: list[Entry]) -> None:
        """Append entries for a category, ignoring paths already in the session."""
        known = {e.path for e in self.all_entries()}
        bucket = self.entries_by_category.setdefault(category, [])
        for entry in entries:
            if entry.path in known:
                continue
            known.add(entry.path)
            bucket.append(entry)
            self.total_bytes += entry.size_bytes

    def add_duplicate_groups(self, category: str, groups: list[DuplicateGroup]) -> None:
        """Merge duplicate groups so each member is the session's entry for its path.

        A path another category already claimed stays in that category; the
        group then refers to that same entry.
        """
        self.add_entries(category, [m for group in groups for m in group.members])
        by_path = {e.path: e for e in self.all_entries()}
        merged: list[DuplicateGroup] = []
        for group in groups:
            members = [by_path.get(m.path, m) for m in group.members]
            for member in members:
                member.group_id = group.content_hash
            merged.append(DuplicateGroup(content_hash=group.content_hash, members=members))
        self.duplicate_groups = merged

    def remove_entry(self, entry: Entry, freed: bool = True) -> bool:
        """Drop a deleted entry and decrement aggregates by its recorded size.

        The entry is matched by path in whichever category holds it.
        ``freed`` is False when the path was already gone, so nothing was reclaimed.
        """
        removed = False
        for bucket in self.entries_by_category.values():
            for index, candidate in enumerate(bucket):
                if candidate.path == entry.path:
                    del bucket[index]
                    self.total_bytes -= candidate.size_bytes
                    if freed:
                        self.freed_bytes += candidate.size_bytes
                    removed = True
                    break
            if removed:
                break
        self._drop_from_groups(entry.path)
        return removed

    def _drop_from_groups(self, path: str) -> None:
        kept: list[DuplicateGroup] = []
        for group in self.duplicate_groups:
            members = [m for m in group.members if m.path != path]
            if len(members) == len(group.members):
                kept.append(group)
            elif len(members) >= 2:
                kept.append(DuplicateGroup(content_hash=group.content_hash, members=members))
            else:
                # The survivor now holds the only copy of this content
                for member in members:
                    member.group_id = None
                    self.retained_paths.add(member.path)
        self.duplicate_groups = kept


class ScanProgress(BaseModel):
    """One update from a running scan."""

    progress: float
    current_path: str = ""
    category_id: Optional[str] = None
    new_entries: list[Entry] = Field(default_factory=list)
    status: ScanStatus = ScanStatus.SCANNING


class FailedEntry(BaseModel):
    path: str
    reason: str
    size_bytes: int = 0


class DeletionOutcome(BaseModel):
    """Result of a deletion batch."""

    succeeded_count: int = 0
    succeeded_bytes: int = 0
    failed: list[FailedEntry] = Field(default_factory=list)
    skipped: list[FailedEntry] = Field(default_factory=list)
    needs_privilege_escalation: bool = False
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return not self.failed


class ThinningResult(BaseModel):
    """Result of slimming a universal binary."""

    path: str
    original_size: int = 0
    new_size: int = 0
    success: bool = False
    error: Optional[str] = None
    rolled_back: bool = False

    @property
    def bytes_freed(self) -> int:
        if not self.success:
            return 0
        return max(self.original_size - self.new_size, 0)


class DiskUsage(BaseModel):
    """Overall disk usage information."""

    total_bytes: int = Field(..., description="Total disk size in bytes")
    used_bytes: int = Field(..., description="Used space in bytes")
    free_bytes: int = Field(..., description="Free space in bytes")
    mount_point: str = Field("/", description="Mount point")

    @property
    def total_gb(self) -> float:
        """Total size in GB (decimal, like macOS)."""
        return self.total_bytes / (1000**3)

    @property
    def used_gb(self) -> float:
        """Used space in GB (decimal, like macOS)."""
        return self.used_bytes / (1000**3)

    @property
    def free_gb(self) -> float:
        """Free space in GB (decimal, like macOS)."""
        return self.free_bytes / (1000**3)

    @property
    def used_percent(self) -> float:
        """Percentage of disk used."""
        return (self.used_bytes / self.total_bytes) * 100 if self.total_bytes > 0 else 0


class InstalledApp(BaseModel):
    """An application seen on disk or in the process table."""

    name: str
    bundle_id: Optional[str] = None
    source: str = "applications"
