"""Tests for disk scanner."""

import os
import plistlib
import tempfile
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

from declutter.models import AppIdentity, CategoryRule, ScanMode
from declutter.scanner import (
    CategoryScanner,
    collect_files,
    expand_path,
    get_disk_usage,
    get_path_size,
    resolve_candidate_paths,
    scan_category,
)

MiB = 1024 * 1024


def sparse_file(path: Path, size: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.truncate(size)
    return path


class TestExpandPath:
    def test_expands_tilde(self):
        result = expand_path("~/test")
        assert str(result).startswith(str(Path.home()))

    def test_handles_absolute_path(self):
        assert str(expand_path("/absolute/path")) == "/absolute/path"


class TestResolveCandidatePaths:
    def test_plain_path_returned_as_is(self):
        assert resolve_candidate_paths("/no/such/dir") == [Path("/no/such/dir")]

    def test_trailing_wildcard(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for name in ["a.dmg", "b.dmg", "c.txt"]:
                (Path(tmpdir) / name).write_text("x")
            result = resolve_candidate_paths(f"{tmpdir}/*.dmg")
            assert [p.name for p in result] == ["a.dmg", "b.dmg"]


class TestGetPathSize:
    def test_single_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            f = Path(tmpdir) / "f.txt"
            f.write_text("Hello, World!")
            assert get_path_size(f) == 13

    def test_nested_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "a" / "b").mkdir(parents=True)
            (root / "one.txt").write_bytes(b"x" * 10)
            (root / "a" / "two.txt").write_bytes(b"x" * 20)
            (root / "a" / "b" / ".hidden").write_bytes(b"x" * 30)
            assert get_path_size(root) == 60

    def test_chunked_sum_matches_serial(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            for i in range(25):
                (root / f"f{i}").write_bytes(b"x" * i)
            expected = sum(range(25))
            assert get_path_size(root, chunk_files=4, max_workers=3) == expected
            assert get_path_size(root, chunk_files=1000) == expected

    def test_missing_path_is_zero(self):
        assert get_path_size(Path("/nonexistent/path/for/sure")) == 0

    def test_symlinks_not_followed(self):
        with tempfile.TemporaryDirectory() as outside, tempfile.TemporaryDirectory() as tmpdir:
            (Path(outside) / "big").write_bytes(b"x" * 1000)
            os.symlink(outside, Path(tmpdir) / "link")
            assert get_path_size(Path(tmpdir)) < 1000

    def test_unreadable_file_counts_as_zero(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "ok").write_bytes(b"x" * 10)
            (root / "gone").write_bytes(b"x" * 10)
            real_lstat = Path.lstat

            def flaky_lstat(self, *args, **kwargs):
                if self.name == "gone":
                    raise PermissionError("denied")
                return real_lstat(self, *args, **kwargs)

            with patch.object(Path, "lstat", flaky_lstat):
                assert get_path_size(root) == 10


class TestCollectFiles:
    def test_lists_regular_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "sub").mkdir()
            (root / "a").write_text("a")
            (root / "sub" / "b").write_text("b")
            assert sorted(p.name for p in collect_files(root)) == ["a", "b"]

    def test_cancelled_walk_stops(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "a").write_text("a")
            cancel = threading.Event()
            cancel.set()
            assert collect_files(Path(tmpdir), cancel=cancel) == []


class TestCategoryScanner:
    def test_threshold_keeps_only_large_file(self):
        """A 40 MiB and a 60 MiB file against a 50 MiB threshold."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            sparse_file(root / "small.bin", 40 * MiB)
            big = sparse_file(root / "big.bin", 60 * MiB)
            rule = CategoryRule(id="large_files", name="Large", paths=[tmpdir], mode=ScanMode.DEEP, min_size_bytes=50 * MiB)

            entries = scan_category(rule)

            assert len(entries) == 1
            assert entries[0].path == str(big)
            assert entries[0].size_bytes == 60 * MiB

    def test_children_mode_sizes_each_child(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "appA").mkdir()
            (root / "appA" / "blob").write_bytes(b"x" * 300)
            (root / "appB").mkdir()
            (root / "appB" / "blob").write_bytes(b"x" * 100)
            rule = CategoryRule(id="user_cache", name="Caches", paths=[tmpdir], owner_from_name=True)

            entries = scan_category(rule)

            assert [e.display_name for e in entries] == ["appA", "appB"]
            assert entries[0].size_bytes == 300
            assert entries[0].is_directory
            assert entries[0].owner == "appa"

    def test_hidden_policy_and_excludes(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / ".hidden").write_text("x")
            (root / "skip").write_text("x")
            (root / "keep").write_text("x")
            rule = CategoryRule(id="t", name="T", paths=[tmpdir], exclude_names=["skip"])
            assert [e.display_name for e in scan_category(rule)] == ["keep"]

            rule = CategoryRule(id="t", name="T", paths=[tmpdir], include_hidden=True, exclude_names=["skip"])
            assert sorted(e.display_name for e in scan_category(rule)) == [".hidden", "keep"]

    def test_root_mode_single_entry(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "a").write_bytes(b"x" * 5)
            (Path(tmpdir) / "b").write_bytes(b"x" * 7)
            rule = CategoryRule(id="dev", name="Dev", paths=[tmpdir], mode=ScanMode.ROOT)
            entries = scan_category(rule)
            assert len(entries) == 1
            assert entries[0].size_bytes == 12

    def test_deep_mode_extension_filter(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "sub").mkdir()
            (root / "sub" / "Installer.DMG").write_text("x")
            (root / "notes.txt").write_text("x")
            rule = CategoryRule(id="img", name="Images", paths=[tmpdir], mode=ScanMode.DEEP, extensions=[".dmg"])
            assert [e.display_name for e in scan_category(rule)] == ["Installer.DMG"]

    def test_missing_root_is_empty(self):
        rule = CategoryRule(id="t", name="T", paths=["/nonexistent/root"])
        assert scan_category(rule) == []

    def test_policy_gated_category_is_empty(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "a").write_text("x")
            rule = CategoryRule(id="t", name="T", paths=[tmpdir], enabled=False)
            assert scan_category(rule) == []

    def test_protected_children_skipped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "mine").write_text("x")
            (Path(tmpdir) / "other").write_text("x")
            rule = CategoryRule(id="t", name="T", paths=[tmpdir])
            scanner = CategoryScanner(is_protected=lambda p: p.name == "mine")
            assert [e.display_name for e in scanner.scan(rule)] == ["other"]

    def test_orphan_flag_and_display_name(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for name in ["com.vendor.installed", "com.gone.thing"]:
                (Path(tmpdir) / name).mkdir()
                (Path(tmpdir) / name / "data").write_text("x")
            identity = AppIdentity(bundle_identifier_aliases={"com.vendor.installed", "vendor", "installed"})
            rule = CategoryRule(id="t", name="T", paths=[tmpdir], orphan_aware=True)

            entries = {e.name: e for e in scan_category(rule, identity)}

            assert entries["com.gone.thing"].is_orphaned
            assert entries["com.gone.thing"].display_name == "com.gone.thing (not installed)"
            assert entries["com.gone.thing"].is_selected
            assert not entries["com.vendor.installed"].is_orphaned

    def test_orphans_only_drops_installed(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for name in ["com.vendor.installed", "com.gone.thing"]:
                (Path(tmpdir) / name).mkdir()
                (Path(tmpdir) / name / "data").write_text("x")
            identity = AppIdentity(bundle_identifier_aliases={"com.vendor.installed"})
            rule = CategoryRule(id="t", name="T", paths=[tmpdir], orphan_aware=True, orphans_only=True)
            assert [e.name for e in scan_category(rule, identity)] == ["com.gone.thing"]

    def test_cancelled_scan_returns_partial(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for name in ["a", "b", "c"]:
                (Path(tmpdir) / name).write_text("x")
            cancel = threading.Event()
            seen = []

            def on_path(path):
                seen.append(path)
                if len(seen) == 2:
                    cancel.set()

            rule = CategoryRule(id="t", name="T", paths=[tmpdir])
            entries = CategoryScanner(cancel=cancel, on_path=on_path).scan(rule)
            assert [e.display_name for e in entries] == ["a"]

    def test_unreadable_root_skipped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            rule = CategoryRule(id="t", name="T", paths=[tmpdir])
            with patch.object(Path, "iterdir", side_effect=PermissionError("denied")):
                assert scan_category(rule) == []


class TestBrokenLoginItems:
    def write_agent(self, directory: Path, name: str, data: dict) -> Path:
        path = directory / f"{name}.plist"
        with open(path, "wb") as f:
            plistlib.dump(data, f)
        return path

    def test_reports_agents_with_missing_program(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            existing = root / "tool"
            existing.write_text("#!/bin/sh")
            self.write_agent(root, "com.ok.agent", {"Label": "ok", "Program": str(existing)})
            broken = self.write_agent(
                root, "com.gone.agent", {"Label": "gone", "ProgramArguments": ["/nonexistent/bin/gone", "--flag"]}
            )
            (root / "garbage.plist").write_text("not a plist")

            rule = CategoryRule(id="broken_login_items", name="Login", paths=[tmpdir], special="broken_login_items")
            entries = scan_category(rule)

            assert [e.path for e in entries] == [str(broken)]
            assert "/nonexistent/bin/gone" in entries[0].display_name

    def test_unknown_special_routine_is_empty(self):
        rule = CategoryRule(id="x", name="X", special="no_such_routine")
        assert scan_category(rule) == []


class TestGetDiskUsage:
    def test_returns_disk_usage(self):
        usage = get_disk_usage("/")
        assert usage.total_bytes > 0
        assert usage.free_bytes >= 0

    @patch("declutter.scanner.shutil.which", return_value=None)
    def test_falls_back_to_shutil(self, mock_which):
        fake = MagicMock(total=1000, used=400, free=600)
        with patch("declutter.scanner.shutil.disk_usage", return_value=fake):
            usage = get_disk_usage("/")
        assert usage.total_bytes == 1000
        assert usage.used_bytes == 400

    @patch("declutter.scanner.shutil.which", return_value="/usr/sbin/diskutil")
    @patch("declutter.scanner.subprocess.run")
    def test_parses_apfs_container(self, mock_run, mock_which):
        mock_run.return_value = MagicMock(
            stdout=(
                "   Container Total Space:     245.1 GB (245107195904 Bytes)\n"
                "   Container Free Space:      100.0 GB (100000000000 Bytes)\n"
            )
        )
        usage = get_disk_usage("/")
        assert usage.total_bytes == 245107195904
        assert usage.free_bytes == 100000000000
