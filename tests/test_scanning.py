import os
import pytest
from pathlib import Path
from media_dedup.scanning.filesystem import DiskScanner
from media_dedup import config

def test_scan_filters_extensions_case_insensitively(tmp_path, write_file):
    write_file(tmp_path / "a.MP4", b"a")
    write_file(tmp_path / "sub" / "b.jpg", b"b")
    write_file(tmp_path / "sub" / "deep" / "c.Mov", b"c")
    write_file(tmp_path / "notes.txt", b"not media")
    write_file(tmp_path / "sub" / "noext", b"nope")

    found = {f.path for f in DiskScanner().scan(tmp_path)}

    assert found == {
        tmp_path / "a.MP4",
        tmp_path / "sub" / "b.jpg",
        tmp_path / "sub" / "deep" / "c.Mov",
    }

def test_scan_populates_size_and_mtime_without_digest(tmp_path, write_file):
    p = write_file(tmp_path / "clip.mp4", b"12345")

    (rec,) = list(DiskScanner().scan(tmp_path))

    assert rec.size_bytes == 5
    assert rec.modified_time == p.stat().st_mtime_ns
    assert rec.digest is None
    assert rec.directory == tmp_path

def test_scan_skips_symlinks(tmp_path, write_file):
    real = write_file(tmp_path / "real" / "clip.mp4", b"data")
    os.symlink(real, tmp_path / "link.mp4")
    os.symlink(tmp_path / "real", tmp_path / "linked_dir")

    found = [f.path for f in DiskScanner().scan(tmp_path)]

    assert found == [real]

def test_scan_is_restartable(tmp_path, write_file):
    write_file(tmp_path / "a.mp4", b"a")
    write_file(tmp_path / "b" / "c.mp4", b"c")

    scanner = DiskScanner()
    first = [f.path for f in scanner.scan(tmp_path)]
    second = [f.path for f in scanner.scan(tmp_path)]

    assert first == second
    assert len(first) == 2

def test_scan_is_lazy(tmp_path, write_file):
    write_file(tmp_path / "a.mp4", b"a")
    gen = DiskScanner().scan(tmp_path)
    # Nothing is walked until iteration starts
    assert next(gen).path == tmp_path / "a.mp4"

def test_scan_respects_skip_dirs(tmp_path, write_file):
    write_file(tmp_path / "keep" / "a.mp4", b"a")
    write_file(tmp_path / "skip" / "b.mp4", b"b")
    write_file(tmp_path / "skip" / "nested" / "c.mp4", b"c")

    found = [f.path for f in DiskScanner().scan(tmp_path, skip_dirs={tmp_path / "skip"})]

    assert found == [tmp_path / "keep" / "a.mp4"]

def test_unreadable_directory_is_a_warning(tmp_path, write_file, monkeypatch):
    write_file(tmp_path / "ok" / "a.mp4", b"a")
    write_file(tmp_path / "locked" / "b.mp4", b"b")
    blocked = tmp_path / "locked"

    real_scandir = os.scandir

    def fake_scandir(path):
        if Path(path) == blocked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", fake_scandir)

    warnings = []
    found = [f.path for f in DiskScanner().scan(tmp_path, warnings)]

    assert found == [tmp_path / "ok" / "a.mp4"]
    assert len(warnings) == 1
    assert warnings[0].stage == "scan"
    assert warnings[0].path == blocked

def test_media_extension_allow_list():
    assert '.mp4' in config.MEDIA_EXTS
    assert '.mkv' in config.MEDIA_EXTS
    assert '.jpg' in config.MEDIA_EXTS
    assert '.txt' not in config.MEDIA_EXTS
    assert all(ext == ext.lower() for ext in config.MEDIA_EXTS)

def test_custom_extensions(tmp_path, write_file):
    write_file(tmp_path / "a.mp4", b"a")
    write_file(tmp_path / "b.RAW", b"b")

    found = [f.path.name for f in DiskScanner(extensions={".raw"}).scan(tmp_path)]
    assert found == ["b.RAW"]

@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs os.mkfifo")
def test_scan_skips_non_regular_files(tmp_path, write_file):
    real = write_file(tmp_path / "clip.mp4", b"data")
    os.mkfifo(tmp_path / "pipe.mp4")

    found = [f.path for f in DiskScanner().scan(tmp_path)]

    assert found == [real]

def test_unreadable_file_is_a_warning(tmp_path, write_file, monkeypatch):
    ok = write_file(tmp_path / "a.mp4", b"a")
    locked = write_file(tmp_path / "b.mp4", b"b")
    real_access = os.access

    def fake_access(path, mode, *args, **kwargs):
        if Path(path) == locked:
            return False
        return real_access(path, mode, *args, **kwargs)

    monkeypatch.setattr(os, "access", fake_access)

    warnings = []
    found = [f.path for f in DiskScanner().scan(tmp_path, warnings)]

    assert found == [ok]
    assert [(w.stage, w.path) for w in warnings] == [("scan", locked)]

@pytest.mark.skipif(not hasattr(os, "getuid") or os.getuid() == 0, reason="root can read any file")
def test_chmod_000_file_is_skipped(tmp_path, write_file):
    ok = write_file(tmp_path / "a.mp4", b"a")
    locked = write_file(tmp_path / "b.mp4", b"b")
    locked.chmod(0)
    try:
        warnings = []
        found = [f.path for f in DiskScanner().scan(tmp_path, warnings)]
    finally:
        locked.chmod(0o644)

    assert found == [ok]
    assert [w.path for w in warnings] == [locked]
