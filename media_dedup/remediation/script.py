"""
Remediation script generation.

The generated bash script is the only artifact of a run. Nothing in this
package executes it: a human reviews it and runs it by hand.
"""
import logging
import os
import re
import shlex
import tempfile
from pathlib import Path
from typing import List, Sequence

from .. import config
from ..exceptions import ScriptWriteError
from ..models import DuplicateGroup, MediaFile, RenameCandidate

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')

_HELPERS = r'''# backup SOURCE RELATIVE_DEST: copy SOURCE into $BACKUP_DIR (skipped once SOURCE is gone)
backup() {
    if [ -e "$1" ]; then
        mkdir -p -- "$BACKUP_DIR/$(dirname -- "$2")"
        cp -p -- "$1" "$BACKUP_DIR/$2"
    fi
}

# remove_duplicate FILE KEEPER: delete FILE only while KEEPER exists with identical content
remove_duplicate() {
    if [ -e "$1" ] && [ -e "$2" ] && [ "$1" != "$2" ] && cmp -s "$1" "$2"; then
        rm -- "$1"
    fi
}

# rename_file SOURCE TARGET: never overwrites an existing TARGET
rename_file() {
    if [ -e "$1" ] && [ ! -e "$2" ]; then
        mv -n -- "$1" "$2"
    fi
}
'''


def _q(path) -> str:
    return shlex.quote(str(path))


def _comment(text) -> str:
    """Keeps odd filenames from breaking out of a comment line."""
    return _CONTROL_CHARS.sub('?', str(text))


class ScriptGenerator:
    def __init__(self, root: Path, backup_parent: Path):
        self.root = Path(root)
        self.backup_parent = Path(backup_parent)

    def generate(self, groups: Sequence[DuplicateGroup], rename_candidates: Sequence[RenameCandidate]) -> str:
        """
        Renders the full script. Output depends only on the arguments, so
        identical input produces byte-identical text.
        """
        lines: List[str] = []
        self._write_preamble(lines)
        self._write_backups(lines, groups, rename_candidates)
        self._write_within_directory(lines, groups)
        self._write_cross_directory(lines, groups)
        self._write_renames(lines, rename_candidates)
        lines.append('echo "Done. Backups are in: $BACKUP_DIR"')
        return "\n".join(lines) + "\n"

    # --- Sections ---

    def _write_preamble(self, out: List[str]):
        out += [
            "#!/usr/bin/env bash",
            "",
            "# WARNING: This script contains potentially destructive operations",
            "# Review carefully before running!",
            f"# Scan root: {_comment(self.root)}",
            "#",
            "# It will, in order:",
            "#   1. Back up every file it may remove or rename",
            "#   2. Remove within-directory duplicates (keeping one copy)",
            "#   3. List cross-directory duplicates (commented out, enable manually)",
            "#   4. Clean up filenames by removing numeric suffixes",
            "",
            "set -euo pipefail",
            "",
            "# Override by exporting BACKUP_DIR before running",
            f'DEFAULT_BACKUP_DIR={_q(self.backup_parent)}/{config.BACKUP_DIR_PREFIX}-"$(date +%Y%m%d_%H%M%S)"',
            'BACKUP_DIR="${BACKUP_DIR:-$DEFAULT_BACKUP_DIR}"',
            'mkdir -p -- "$BACKUP_DIR"',
            "",
            _HELPERS,
        ]

    def _write_backups(self, out: List[str], groups: Sequence[DuplicateGroup], renames: Sequence[RenameCandidate]):
        out += self._banner("Backups")

        seen = set()
        for group in groups:
            targets = group.removable + self._cross_directory_candidates(group)
            for f in targets:
                if f.path not in seen:
                    seen.add(f.path)
                    out.append(self._backup_cmd(f.path))
        for c in renames:
            if c.current_path not in seen:
                seen.add(c.current_path)
                out.append(self._backup_cmd(c.current_path))

        if not seen:
            out.append("# Nothing to back up")
        out.append("")

    def _write_within_directory(self, out: List[str], groups: Sequence[DuplicateGroup]):
        out += self._banner("Within-Directory Duplicates")

        count = 0
        for group in groups:
            for decision in group.within_directory:
                out.append(f"# Directory: {_comment(decision.directory)}")
                out.append(f"# Duplicate set with checksum: {group.digest[:8]}...")
                out.append(f"# Keeping: {_comment(decision.keeper.path.name)}")
                for f in decision.removable:
                    out.append(f"remove_duplicate {_q(f.path)} {_q(decision.keeper.path)}")
                    count += 1
                out.append("")

        if not count:
            out += ["# No within-directory duplicates found", ""]

    def _write_cross_directory(self, out: List[str], groups: Sequence[DuplicateGroup]):
        out += self._banner("Cross-Directory Duplicates")
        out += [
            "# WARNING: These are duplicates across different directories.",
            "# They are not removed automatically as they may serve different purposes.",
            "# Review and uncomment the lines below if you want to remove them.",
            "",
        ]

        count = 0
        for group in groups:
            candidates = self._cross_directory_candidates(group)
            if not candidates:
                continue
            reference = group.survivors()[0]
            out.append(f"# Duplicate set with checksum: {group.digest[:8]}...")
            out.append(f"# Reference copy: {_comment(reference.path)}")
            for f in candidates:
                out.append(f"# remove_duplicate {_comment(_q(f.path))} {_comment(_q(reference.path))}")
                count += 1
            out.append("")

        if not count:
            out += ["# No cross-directory duplicates found", ""]

    def _write_renames(self, out: List[str], renames: Sequence[RenameCandidate]):
        out += self._banner("Filename Cleanup (Remove Numeric Suffixes)")

        for c in renames:
            out.append(f"# Rename to remove suffix: {_comment(c.current_path.name)} -> {_comment(c.proposed_path.name)}")
            out.append(f"rename_file {_q(c.current_path)} {_q(c.proposed_path)}")
            out.append("")

        if not renames:
            out += ["# No filename cleanup needed", ""]

    # --- Helpers ---

    @staticmethod
    def _banner(title: str) -> List[str]:
        return ["###", f"# {title}", "###", ""]

    @staticmethod
    def _cross_directory_candidates(group: DuplicateGroup) -> List[MediaFile]:
        """Surviving copies other than the reference (first by path)."""
        if not group.is_cross_directory:
            return []
        return group.survivors()[1:]

    def _backup_cmd(self, path: Path) -> str:
        return f"backup {_q(path)} {_q(self._backup_relpath(path))}"

    def _backup_relpath(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.root))
        except ValueError:
            return str(path.relative_to(path.anchor))


def write_script(text: str, path: Path) -> Path:
    """
    Writes the script atomically (temp file + rename) and marks it executable.
    Either the complete script ends up at `path` or nothing does.
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, 0o755)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise ScriptWriteError(f"Cannot write remediation script {path}: {e}") from e

    logging.info(f"Remediation script written to {path}")
    return path
