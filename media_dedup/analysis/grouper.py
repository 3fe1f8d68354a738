"""Groups hashed files by digest and classifies each group."""
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List

from ..models import DuplicateGroup, KeeperDecision, MediaFile
from .normalizer import is_suffixed_variant


class DuplicateGrouper:
    def group(self, hashed_files: Iterable[MediaFile]) -> List[DuplicateGroup]:
        """
        Buckets files by digest and returns every bucket with two or more
        members as a DuplicateGroup.

        Members are sorted by path, so the result does not depend on the
        order files were hashed in. Groups are ordered by their first member.
        """
        buckets: Dict[str, List[MediaFile]] = defaultdict(list)
        for f in hashed_files:
            if f.digest is None:
                logging.debug(f"Ignoring unhashed file: {f.path}")
                continue
            buckets[f.digest].append(f)

        groups = []
        for digest, members in buckets.items():
            if len(members) < 2:
                continue
            members = sorted(members, key=lambda f: f.sort_key)
            groups.append(self._classify(digest, members))

        groups.sort(key=lambda g: g.members[0].sort_key)
        logging.info(f"Found {len(groups)} duplicate groups among {sum(len(b) for b in buckets.values())} files")
        return groups

    def _classify(self, digest: str, members: List[MediaFile]) -> DuplicateGroup:
        by_dir: Dict[Path, List[MediaFile]] = defaultdict(list)
        for f in members:
            by_dir[f.directory].append(f)

        directories = sorted(by_dir, key=str)
        group = DuplicateGroup(digest=digest, members=members)

        for directory in directories:
            subset = by_dir[directory]
            if len(subset) < 2:
                continue
            keeper = self.select_keeper(subset)
            group.within_directory.append(KeeperDecision(
                directory=directory,
                keeper=keeper,
                removable=[f for f in subset if f is not keeper],
            ))

        if len(directories) > 1:
            group.cross_directory = directories

        return group

    @staticmethod
    def select_keeper(subset: List[MediaFile]) -> MediaFile:
        """
        Picks the lexicographically-first path, preferring names that are not
        a numeric-suffix variant of another name in the subset
        (``x.mp4`` is kept over ``x (1).mp4``).
        """
        return min(subset, key=lambda f: (is_suffixed_variant(f, subset), f.sort_key))
