import os
import shlex
import shutil
import stat
import subprocess
import pytest
from pathlib import Path

from media_dedup.analysis.grouper import DuplicateGrouper
from media_dedup.analysis.normalizer import FilenameNormalizer
from media_dedup.exceptions import ScriptWriteError
from media_dedup.models import MediaFile, RenameCandidate
from media_dedup.remediation.script import ScriptGenerator, write_script
from media_dedup.scanning.filesystem import DiskScanner
from media_dedup.scanning.hasher import FileHasher

ROOT = Path("/m")

def mf(path: str, digest: str = "d" * 64) -> MediaFile:
    return MediaFile(path=Path(path), size_bytes=1, modified_time=0, digest=digest)

def scenario_groups():
    return DuplicateGrouper().group([mf("/m/A/x.mp4"), mf("/m/A/x (1).mp4"), mf("/m/B/x.mp4")])

def render(groups, renames=()):
    return ScriptGenerator(ROOT, Path("/out")).generate(groups, list(renames))

def test_scenario_script_layout():
    lines = render(scenario_groups()).splitlines()

    assert lines[0] == "#!/usr/bin/env bash"
    assert "set -euo pipefail" in lines

    backup_a = "backup '/m/A/x (1).mp4' 'A/x (1).mp4'"
    backup_b = "backup /m/B/x.mp4 B/x.mp4"
    remove_a = "remove_duplicate '/m/A/x (1).mp4' /m/A/x.mp4"
    remove_b = "# remove_duplicate /m/B/x.mp4 /m/A/x.mp4"

    for expected in (backup_a, backup_b, remove_a, remove_b):
        assert expected in lines

    # Backups precede removals; commented cross-directory section follows active removals
    assert lines.index(backup_a) < lines.index(remove_a) < lines.index(remove_b)

    # B/x.mp4 is never removed actively and nothing is renamed
    assert not any(l.startswith("remove_duplicate /m/B/") for l in lines)
    assert not any(l.startswith("rename_file ") for l in lines)

def test_sections_are_in_order():
    text = render(scenario_groups())
    positions = [
        text.index("# Backups"),
        text.index("# Within-Directory Duplicates"),
        text.index("# Cross-Directory Duplicates"),
        text.index("# Filename Cleanup"),
    ]
    assert positions == sorted(positions)

def test_output_is_byte_identical_for_identical_input():
    groups = scenario_groups()
    renames = [RenameCandidate(Path("/m/C/y (1).mp4"), Path("/m/C/y.mp4"))]
    assert render(groups, renames) == render(groups, renames)

def test_output_does_not_depend_on_input_order():
    files = [mf("/m/A/x.mp4"), mf("/m/A/x (1).mp4"), mf("/m/B/x.mp4"), mf("/m/C/q.mp4", "e" * 64), mf("/m/D/q.mp4", "e" * 64)]
    a = render(DuplicateGrouper().group(files))
    b = render(DuplicateGrouper().group(list(reversed(files))))
    assert a == b

def test_rename_commands_come_last_and_are_backed_up():
    groups = DuplicateGrouper().group([mf("/m/A/x (1).mp4"), mf("/m/A/x (2).mp4")])
    renames = FilenameNormalizer(exists=lambda p: False).normalize(groups[0])
    lines = render(groups, renames).splitlines()

    rename = "rename_file '/m/A/x (1).mp4' /m/A/x.mp4"
    assert rename in lines
    assert "backup '/m/A/x (1).mp4' 'A/x (1).mp4'" in lines
    assert lines.index("remove_duplicate '/m/A/x (2).mp4' '/m/A/x (1).mp4'") < lines.index(rename)

def test_hostile_filenames_are_quoted():
    name = "/m/A/it's; rm -rf ~\n.mp4"
    groups = DuplicateGrouper().group([mf("/m/A/a.mp4"), mf(name)])
    text = render(groups)

    assert f"remove_duplicate {shlex.quote(name)} /m/A/a.mp4" in text
    # Comment lines never carry a raw newline from a filename
    for line in text.splitlines():
        if line.startswith("#"):
            assert "rm -rf" not in line or line.startswith("# ")

def test_empty_input_still_produces_valid_script():
    text = render([])
    assert "# Nothing to back up" in text
    assert "# No within-directory duplicates found" in text
    assert "# No cross-directory duplicates found" in text
    assert "# No filename cleanup needed" in text

def test_no_generation_timestamp_in_text():
    text = render(scenario_groups())
    # The backup folder name is evaluated by the shell, not baked in
    assert '$(date +%Y%m%d_%H%M%S)' in text
    assert "DEFAULT_BACKUP_DIR=/out/dedup-backup-" in text

def test_write_script_is_atomic_and_executable(tmp_path):
    path = write_script("#!/usr/bin/env bash\necho hi\n", tmp_path / "out" / "remove.sh")

    assert path.read_text() == "#!/usr/bin/env bash\necho hi\n"
    assert path.stat().st_mode & stat.S_IXUSR
    assert [p.name for p in path.parent.iterdir()] == ["remove.sh"]

def test_write_script_failure_leaves_nothing(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(ScriptWriteError):
        write_script("echo hi\n", blocker / "remove.sh")
    assert blocker.read_text() == "not a directory"

@pytest.mark.skipif(shutil.which("bash") is None or shutil.which("cmp") is None, reason="needs bash and cmp")
def test_generated_script_runs_and_is_idempotent(scenario_tree, tmp_path, write_file):
    root = scenario_tree
    # Two surviving variants in C: one removed, the other renamed to the bare name
    write_file(root / "C" / "y (1).mp4", b"other clip")
    write_file(root / "C" / "y (2).mp4", b"other clip")

    hashed = FileHasher().hash_files(DiskScanner().scan(root), max_workers=1)
    groups = DuplicateGrouper().group(hashed)
    normalizer = FilenameNormalizer()
    renames, _ = normalizer.resolve([c for g in groups for c in normalizer.normalize(g)])

    script = write_script(ScriptGenerator(root, tmp_path).generate(groups, renames), tmp_path / "remove.sh")
    backup_dir = tmp_path / "backup"
    env = {**os.environ, "BACKUP_DIR": str(backup_dir)}

    for _ in range(2):
        result = subprocess.run(["bash", str(script)], env=env, capture_output=True, text=True)
        assert result.returncode == 0, result.stderr

    assert not (root / "A" / "x (1).mp4").exists()
    assert (root / "A" / "x.mp4").exists()
    assert (root / "B" / "x.mp4").exists()
    assert (root / "C" / "y.mp4").read_bytes() == b"other clip"
    assert not (root / "C" / "y (1).mp4").exists()
    assert not (root / "C" / "y (2).mp4").exists()

    assert (backup_dir / "A" / "x (1).mp4").exists()
    assert (backup_dir / "B" / "x.mp4").exists()
    assert (backup_dir / "C" / "y (2).mp4").exists()
