import os
import threading

import pytest

from keysync import pipeline
from keysync.config import ScanConfig
from keysync.exceptions import ScanCancelled
from keysync.pipeline import UsageCache, rename_key_usage, scan_project

from conftest import write


class TestScanProject:
    def test_extracts_across_files(self, project, config):
        result = scan_project(config.scan, max_workers=2)
        assert result.keys.valid_keys == {"auth.login.title", "common.save", "common.cancel"}
        assert len(result.keys.dynamic) == 1
        assert "src/pages/LoginPage.test.tsx" not in result.files
        assert not any(path.startswith("node_modules") for path in result.files)

    def test_result_independent_of_worker_count(self, project, config):
        single = scan_project(config.scan, max_workers=1)
        many = scan_project(config.scan, max_workers=8)
        assert single.records == many.records
        assert single.files == many.files

    def test_records_sorted_by_path(self, project, config):
        files = [r.file for r in scan_project(config.scan).records]
        assert files == sorted(files)

    def test_undecodable_file_skipped(self, tmp_path):
        write(tmp_path / "good.ts", 't("ok.key")')
        (tmp_path / "bad.ts").write_bytes(b"\xff\xfe t('x')")
        result = scan_project(ScanConfig(root=str(tmp_path)))
        assert result.skipped == ("bad.ts",)
        assert result.keys.keys == {"ok.key"}

    def test_collects_hardcoded_text_from_jsx_files(self, tmp_path):
        write(tmp_path / "src" / "App.tsx", "<p>Visible text</p>\n")
        write(tmp_path / "src" / "notes.ts", "<p>Visible text</p>\n")
        result = scan_project(ScanConfig(root=str(tmp_path)))
        assert [(h.file, h.text) for h in result.hardcoded] == [("src/App.tsx", "Visible text")]
        assert scan_project(ScanConfig(root=str(tmp_path), hardcoded=False)).hardcoded == ()

    def test_cancelled_scan_raises(self, project, config):
        event = threading.Event()
        event.set()
        with pytest.raises(ScanCancelled):
            scan_project(config.scan, cancel_event=event)

    def test_cancel_during_scan_stops_reading(self, project, config, monkeypatch):
        event = threading.Event()
        calls = []
        real_extract = pipeline.extract

        def extract_then_cancel(*args):
            calls.append(args[0])
            event.set()
            return real_extract(*args)

        monkeypatch.setattr(pipeline, "extract", extract_then_cancel)
        with pytest.raises(ScanCancelled) as excinfo:
            scan_project(config.scan, max_workers=1, cancel_event=event)
        assert len(calls) == 1
        assert excinfo.value.processed == 1


class TestUsageCache:
    def test_unchanged_files_are_not_reextracted(self, project, config):
        cache = UsageCache()
        first = scan_project(config.scan, cache=cache)
        misses = cache.misses
        second = scan_project(config.scan, cache=cache)
        assert cache.hits == misses
        assert first.records == second.records

    def test_changed_file_is_rescanned(self, tmp_path):
        target = write(tmp_path / "a.ts", 't("first.key")')
        cache = UsageCache()
        scan_config = ScanConfig(root=str(tmp_path))
        scan_project(scan_config, cache=cache)

        target.write_text('t("second.key") t("third.key")', encoding="utf-8")
        stat = os.stat(target)
        os.utime(target, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1000000))
        result = scan_project(scan_config, cache=cache)
        assert result.keys.keys == {"second.key", "third.key"}

    def test_deleted_files_are_pruned(self, tmp_path):
        write(tmp_path / "a.ts", 't("a.key")')
        gone = write(tmp_path / "b.ts", 't("b.key")')
        cache = UsageCache()
        scan_config = ScanConfig(root=str(tmp_path))
        scan_project(scan_config, cache=cache)
        assert len(cache) == 2

        gone.unlink()
        result = scan_project(scan_config, cache=cache)
        assert len(cache) == 1
        assert result.keys.keys == {"a.key"}

    def test_clear(self):
        cache = UsageCache()
        cache.put("/x", "x", ScanConfig(), (1, 1), ())
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0


class TestRenameKeyUsage:
    def test_rewrites_files(self, tmp_path):
        write(tmp_path / "src" / "a.ts", "t('old.key'); t('keep')\n")
        write(tmp_path / "src" / "b.ts", 'translate("old.key")\n')
        write(tmp_path / "src" / "c.ts", "nothing here\n")

        result = rename_key_usage(ScanConfig(root=str(tmp_path)), "old.key", "new.key")
        assert result.changed_files == ("src/a.ts", "src/b.ts")
        assert result.replacements == 2
        assert result.files_scanned == 3
        assert (tmp_path / "src" / "a.ts").read_text(encoding="utf-8") == "t('new.key'); t('keep')\n"

    def test_dry_run_leaves_files(self, tmp_path):
        target = write(tmp_path / "a.ts", "t('old.key')")
        result = rename_key_usage(ScanConfig(root=str(tmp_path)), "old.key", "new.key", dry_run=True)
        assert result.replacements == 1
        assert target.read_text(encoding="utf-8") == "t('old.key')"
