import os
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Set

from .. import config
from ..models import MediaFile, RunWarning

class DiskScanner:
    def __init__(self, extensions: Optional[set] = None):
        self.extensions = {e.lower() for e in (extensions or config.MEDIA_EXTS)}

    def scan(self,
             root: Path,
             warnings: Optional[List[RunWarning]] = None,
             skip_dirs: Optional[Set[Path]] = None) -> Iterator[MediaFile]:
        """
        Generator that yields a MediaFile (size/mtime, no digest) for every
        media file under root. Each call walks the tree again.

        Args:
            warnings: Optional list that receives a RunWarning for every
                      directory or file that could not be read.
            skip_dirs: Directories (and everything below them) to leave out.
        """
        skip_dirs = skip_dirs or set()
        for entry in self._iter_entries(Path(root), warnings, skip_dirs):
            if Path(entry.name).suffix.lower() not in self.extensions:
                continue

            try:
                st = entry.stat(follow_symlinks=False)
            except OSError as e:
                self._warn(warnings, Path(entry.path), f"Cannot stat file: {e}")
                continue

            # Dropped even when the cache already knows its digest
            if not os.access(entry.path, os.R_OK):
                self._warn(warnings, Path(entry.path), "Permission denied: file is not readable")
                continue

            yield MediaFile(
                path=Path(entry.path),
                size_bytes=st.st_size,
                modified_time=st.st_mtime_ns,
            )

    def _iter_entries(self,
                      root: Path,
                      warnings: Optional[List[RunWarning]],
                      skip_dirs: Set[Path]) -> Iterator[os.DirEntry]:
        """Depth-first walker using os.scandir. Symlinks and special files are skipped."""
        stack = [root]
        while stack:
            current = stack.pop()
            if skip_dirs and any(sd == current or sd in current.parents for sd in skip_dirs):
                continue

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                self._warn(warnings, current, f"Cannot read directory: {e}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name)

            dirs = []
            for e in entries:
                try:
                    if e.is_symlink():
                        continue
                    if e.is_dir(follow_symlinks=False):
                        dirs.append(Path(e.path))
                    elif e.is_file(follow_symlinks=False):
                        yield e
                except OSError as err:
                    self._warn(warnings, Path(e.path), f"Cannot inspect entry: {err}")

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

    def _warn(self, warnings: Optional[List[RunWarning]], path: Path, message: str):
        logging.warning(f"{message} ({path})")
        if warnings is not None:
            warnings.append(RunWarning(path=path, stage="scan", message=message))
