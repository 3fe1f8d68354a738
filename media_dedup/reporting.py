import csv
import logging
from pathlib import Path
from typing import Dict, List, Sequence

from .models import DuplicateGroup, RenameCandidate, RunSummary

def format_bytes(n: float) -> str:
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(n) < 1024 or unit == "TB":
            return f"{n:.0f} {unit}" if unit == "B" else f"{n:.1f} {unit}"
        n /= 1024


class ReportGenerator:
    def __init__(self, summary: RunSummary):
        self.summary = summary

    def log_summary(self):
        """Logs the end-of-run counts, performance figures and warnings."""
        s = self.summary
        logging.info("=== Deduplication Analysis Complete ===")
        logging.info(f"Files scanned:               {s.files_scanned}")
        logging.info(f"Files hashed:                {s.files_hashed}")
        logging.info(f"Unique files found:          {s.unique_files}")
        logging.info(f"Duplicate groups:            {s.groups_found}")
        logging.info(f"Within-directory removable:  {s.within_directory_removable}")
        logging.info(f"Cross-directory groups:      {s.cross_directory_groups}")
        logging.info(f"Filename cleanup candidates: {s.renames}")

        lookups = s.cache_hits + s.cache_misses
        hit_ratio = (s.cache_hits / lookups * 100) if lookups else 0.0
        throughput = s.bytes_hashed / s.hashing_seconds if s.hashing_seconds > 0 else 0

        logging.info("=== Performance Metrics ===")
        logging.info(f"Total runtime:   {s.elapsed_seconds:.2f}s")
        logging.info(f"Hashing time:    {s.hashing_seconds:.2f}s")
        logging.info(f"Data hashed:     {format_bytes(s.bytes_hashed)}")
        logging.info(f"Throughput:      {format_bytes(throughput)}/s")
        logging.info(f"Cache hits:      {s.cache_hits}/{lookups} ({hit_ratio:.0f}%)")
        if s.peak_memory_bytes:
            logging.info(f"Peak memory:     {format_bytes(s.peak_memory_bytes)}")

        if s.warnings:
            logging.warning(f"{len(s.warnings)} warnings during the run:")
            for w in s.warnings:
                logging.warning(f"  {w}")

        if s.script_path:
            logging.info("IMPORTANT: Potentially destructive operations have been written to:")
            logging.info(f"  {s.script_path}")
            logging.info("Review this script carefully, then run it with: bash <script>")

    def write_csv(self,
                  groups: Sequence[DuplicateGroup],
                  renames: Sequence[RenameCandidate],
                  output_csv: Path):
        """One row per duplicate group member with its planned action."""
        rename_map: Dict[Path, Path] = {c.current_path: c.proposed_path for c in renames}

        headers = ["Digest", "Path", "Directory", "Size (bytes)", "Action", "Keeper / Reference", "Rename To"]

        rows = 0
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            for group in groups:
                for row in self._group_rows(group, rename_map):
                    writer.writerow(row)
                    rows += 1

        logging.info(f"Report written: {output_csv} ({rows} rows)")

    def _group_rows(self, group: DuplicateGroup, rename_map: Dict[Path, Path]) -> List[list]:
        actions: Dict[Path, tuple] = {}

        for decision in group.within_directory:
            actions[decision.keeper.path] = ("Keep", "")
            for f in decision.removable:
                actions[f.path] = ("Remove", str(decision.keeper.path))

        if group.is_cross_directory:
            survivors = group.survivors()
            reference = survivors[0]
            actions[reference.path] = ("Keep (reference)", "")
            for f in survivors[1:]:
                actions[f.path] = ("Review (cross-directory)", str(reference.path))

        rows = []
        for f in group.members:
            action, keeper = actions.get(f.path, ("Keep", ""))
            rename_to = rename_map.get(f.path)
            rows.append([
                group.digest,
                str(f.path),
                str(f.directory),
                f.size_bytes,
                action,
                keeper,
                str(rename_to) if rename_to else "",
            ])
        return rows
