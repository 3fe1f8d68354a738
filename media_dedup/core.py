import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Set

from . import config
from .analysis.grouper import DuplicateGrouper
from .analysis.normalizer import FilenameNormalizer
from .cache import ChecksumCache
from .exceptions import InvalidRootError
from .models import RenameCandidate, RunSummary, RunWarning
from .remediation.script import ScriptGenerator, write_script
from .scanning.filesystem import DiskScanner
from .scanning.hasher import FileHasher

def peak_memory_bytes() -> int:
    """Peak resident set size of this process, or 0 where the platform has no getrusage."""
    try:
        import resource
    except ImportError:
        return 0
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is kilobytes on Linux, bytes on macOS
    return peak if sys.platform == "darwin" else peak * 1024

class DedupApp:
    def __init__(self,
                 output_dir: Path,
                 cache_path: Optional[Path] = None,
                 use_cache: bool = True):
        self.output_dir = Path(output_dir).resolve()
        self.cache_path = cache_path or self.output_dir / config.CACHE_FILENAME
        self.use_cache = use_cache

        # Populated by run() for reporting
        self.groups = []
        self.renames: List[RenameCandidate] = []

    @property
    def script_path(self) -> Path:
        return self.output_dir / config.SCRIPT_NAME

    def run(self,
            root: Path,
            max_workers: int = config.DEFAULT_WORKERS,
            prune_cache: bool = False,
            skip_dirs: Optional[Set[Path]] = None) -> RunSummary:
        """
        Executes the deduplication pipeline.
        1. Scan (media files only)
        2. Hash (through the checksum cache)
        3. Group & classify duplicates
        4. Plan numeric-suffix renames
        5. Write the remediation script

        Per-file problems end up in summary.warnings. Raises InvalidRootError
        or ScriptWriteError when no script can be produced.
        """
        started = time.perf_counter()
        root = Path(root).resolve()
        if not root.exists():
            raise InvalidRootError(f"Scan root {root} does not exist.")
        if not root.is_dir():
            raise InvalidRootError(f"Scan root {root} is not a directory.")

        summary = RunSummary(root=root)
        warnings: List[RunWarning] = summary.warnings

        cache = ChecksumCache(self.cache_path if self.use_cache else None)
        with cache:
            # --- Step 1: Scanning ---
            logging.info(f"Scanning {root}...")
            skip_dirs = {Path(d).resolve() for d in (skip_dirs or set())} | self._previous_backups()
            files = list(DiskScanner().scan(root, warnings, skip_dirs))
            summary.files_scanned = len(files)
            logging.info(f"Scan complete. Found {len(files)} media files.")

            # --- Step 2: Hashing ---
            hasher = FileHasher(cache)
            hashed = hasher.hash_files(files, max_workers=max_workers, warnings=warnings)

            if prune_cache:
                cache.prune_missing()
        warnings.extend(cache.warnings)

        summary.files_hashed = len(hashed)
        summary.cache_hits = hasher.stats.cache_hits
        summary.cache_misses = hasher.stats.cache_misses
        summary.bytes_hashed = hasher.stats.bytes_hashed
        summary.hashing_seconds = hasher.stats.hashing_seconds
        summary.unique_files = len({f.digest for f in hashed})

        # --- Step 3: Grouping ---
        self.groups = DuplicateGrouper().group(hashed)
        summary.groups_found = len(self.groups)
        summary.within_directory_removable = sum(len(g.removable) for g in self.groups)
        summary.cross_directory_groups = sum(1 for g in self.groups if g.is_cross_directory)

        # --- Step 4: Renames ---
        normalizer = FilenameNormalizer()
        proposed = [c for g in self.groups for c in normalizer.normalize(g)]
        self.renames, rename_warnings = normalizer.resolve(proposed)
        warnings.extend(rename_warnings)
        summary.renames = len(self.renames)

        # --- Step 5: Script ---
        text = ScriptGenerator(root, self.output_dir).generate(self.groups, self.renames)
        summary.script_path = write_script(text, self.script_path)

        summary.elapsed_seconds = time.perf_counter() - started
        summary.peak_memory_bytes = peak_memory_bytes()
        logging.info("Deduplication analysis complete.")
        return summary

    def _previous_backups(self) -> Set[Path]:
        """Backup folders from earlier script runs hold copies that must not count as duplicates."""
        if not self.output_dir.is_dir():
            return set()
        return {p for p in self.output_dir.glob(f"{config.BACKUP_DIR_PREFIX}-*") if p.is_dir()}
