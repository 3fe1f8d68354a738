"""
Numeric-suffix detection and rename planning.

A "numeric-suffix variant" is a filename whose stem ends in one of the
patterns from config.SUFFIX_PATTERNS, e.g. ``clip (1).mp4``, ``clip(2).mp4``,
``clip-3.mp4`` or ``clip_4.mp4``. Stripping the suffix yields the canonical
name ``clip.mp4``. Nothing else (trailing digits without a separator, words
such as "copy") is treated as a suffix.
"""
import logging
import os
import re
from collections import defaultdict
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .. import config
from ..models import DuplicateGroup, MediaFile, RenameCandidate, RunWarning

_SUFFIX_RES = [re.compile(p) for p in config.SUFFIX_PATTERNS]


def split_numeric_suffix(path) -> Optional[Tuple[str, str]]:
    """
    Returns (canonical_filename, directory) when the filename carries a
    numeric suffix, otherwise None. Pure string parsing; never touches disk.

    >>> split_numeric_suffix("/media/A/x (1).mp4")
    ('x.mp4', '/media/A')
    """
    p = Path(path)
    stem, ext = p.stem, p.suffix
    for rx in _SUFFIX_RES:
        m = rx.search(stem)
        if m is None:
            continue
        base = stem[:m.start()]
        if not base.strip():
            # "(1).mp4" or "_2.mp4" has nothing left to be canonical
            return None
        return f"{base}{ext}", str(p.parent)
    return None


def canonical_name(name: str) -> str:
    """Filename with any numeric suffix removed (unchanged when there is none)."""
    parsed = split_numeric_suffix(name)
    return parsed[0] if parsed else name


def is_suffixed_variant(member: MediaFile, siblings: Iterable[MediaFile]) -> bool:
    """
    True when member's name is a numeric-suffix variant of a name that
    also appears among its siblings (same directory).
    """
    parsed = split_numeric_suffix(member.path)
    if parsed is None:
        return False
    canon = parsed[0]
    for other in siblings:
        if other.path == member.path:
            continue
        if other.path.name == canon or canonical_name(other.path.name) == canon:
            return True
    return False


class FilenameNormalizer:
    def __init__(self, exists: Callable[[str], bool] = os.path.lexists):
        self.exists = exists

    def normalize(self, group: DuplicateGroup) -> List[RenameCandidate]:
        """
        Proposes canonical names for suffixed members of one duplicate group.

        Within each directory of the group, a member is a candidate when its
        canonical name is shared by another member there (the bare name or
        another variant of it). Members scheduled for removal are skipped.
        Candidates are returned in path order, at most one per target.
        """
        removing: Set[Path] = {f.path for f in group.removable}

        by_dir: Dict[Path, List[MediaFile]] = defaultdict(list)
        for f in group.members:
            by_dir[f.directory].append(f)

        candidates: List[RenameCandidate] = []
        taken: Set[Path] = set()

        for directory in sorted(by_dir, key=str):
            siblings = by_dir[directory]
            for f in siblings:
                if f.path in removing:
                    continue
                if not is_suffixed_variant(f, siblings):
                    continue

                canon, _ = split_numeric_suffix(f.path)
                target = directory / canon
                if target in taken:
                    logging.debug(f"Dropping rename of {f.path}: {target} already claimed in this group")
                    continue
                taken.add(target)
                candidates.append(RenameCandidate(current_path=f.path, proposed_path=target, digest=group.digest))

        return candidates

    def resolve(self, candidates: Iterable[RenameCandidate]) -> Tuple[List[RenameCandidate], List[RunWarning]]:
        """
        Applies run-wide conflict rules.

        A candidate is dropped when its target already exists on disk, and
        every candidate is dropped when two or more propose the same target.
        """
        candidates = sorted(candidates, key=lambda c: str(c.current_path))
        claims: Dict[Path, List[RenameCandidate]] = defaultdict(list)
        for c in candidates:
            claims[c.proposed_path].append(c)

        accepted: List[RenameCandidate] = []
        warnings: List[RunWarning] = []

        for c in candidates:
            rivals = claims[c.proposed_path]
            if len(rivals) > 1:
                others = ", ".join(str(r.current_path) for r in rivals if r is not c)
                msg = f"Rename target {c.proposed_path} is also proposed for {others}; left for manual handling"
            elif self.exists(str(c.proposed_path)):
                msg = f"Rename target {c.proposed_path} already exists; left for manual handling"
            else:
                accepted.append(c)
                continue

            logging.warning(f"{msg} ({c.current_path})")
            warnings.append(RunWarning(path=c.current_path, stage="rename", message=msg))

        return accepted, warnings
