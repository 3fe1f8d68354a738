from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class MediaFile:
    """
    Represents one candidate file found during a scan.
    The hasher returns a copy with `digest` filled in.
    """
    path: Path
    size_bytes: int
    modified_time: int      # st_mtime_ns
    digest: Optional[str] = None

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def sort_key(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class CacheEntry:
    """A persisted digest, valid only while size and mtime still match."""
    path: str
    size_bytes: int
    modified_time: int
    digest: str

    def matches(self, size_bytes: int, modified_time: int) -> bool:
        return self.size_bytes == size_bytes and self.modified_time == modified_time


@dataclass
class KeeperDecision:
    """One within-directory subset: a single keeper, everything else removable."""
    directory: Path
    keeper: MediaFile
    removable: List[MediaFile]


@dataclass
class DuplicateGroup:
    digest: str
    members: List[MediaFile]                                        # sorted by path
    within_directory: List[KeeperDecision] = field(default_factory=list)
    cross_directory: List[Path] = field(default_factory=list)        # distinct parents, sorted

    @property
    def is_cross_directory(self) -> bool:
        return len(self.cross_directory) > 1

    @property
    def removable(self) -> List[MediaFile]:
        return [f for decision in self.within_directory for f in decision.removable]

    def survivors(self) -> List[MediaFile]:
        """Members left after the within-directory removals, in path order."""
        removed = {f.path for f in self.removable}
        return [f for f in self.members if f.path not in removed]


@dataclass(frozen=True)
class RenameCandidate:
    current_path: Path
    proposed_path: Path
    digest: Optional[str] = None


@dataclass(frozen=True)
class RunWarning:
    path: Path
    stage: str              # scan/hash/rename/cache
    message: str

    def __str__(self) -> str:
        return f"[{self.stage}] {self.path}: {self.message}"


@dataclass
class RunSummary:
    root: Path
    script_path: Optional[Path] = None
    files_scanned: int = 0
    files_hashed: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    bytes_hashed: int = 0
    hashing_seconds: float = 0.0
    elapsed_seconds: float = 0.0
    groups_found: int = 0
    within_directory_removable: int = 0
    cross_directory_groups: int = 0
    renames: int = 0
    unique_files: int = 0
    peak_memory_bytes: int = 0
    warnings: List[RunWarning] = field(default_factory=list)
