import os

import pytest

from keysync.scanner import ScanMatcher, compile_glob, scan

from conftest import write


def relative(paths, root):
    return [os.path.relpath(p, root).replace(os.sep, "/") for p in paths]


class TestGlobs:
    @pytest.mark.parametrize(
        "pattern,path,expected",
        [
            ("**/*.test.ts", "src/x.test.ts", True),
            ("**/*.test.ts", "x.test.ts", True),
            ("**/*.test.ts", "src/x.ts", False),
            ("src/*.ts", "src/a.ts", True),
            ("src/*.ts", "src/deep/a.ts", False),
            ("src/**", "src/deep/a.ts", True),
            ("**/__tests__/**", "src/__tests__/a.ts", True),
            ("file?.js", "file1.js", True),
            ("file?.js", "file10.js", False),
            ("./src/*.js", "src/a.js", True),
        ],
    )
    def test_compile_glob(self, pattern, path, expected):
        assert bool(compile_glob(pattern).match(path)) is expected

    def test_exclusion_wins_over_inclusion(self):
        matcher = ScanMatcher(include=["**/*.ts"], exclude=["**/*.test.ts"])
        assert matcher("src/x.ts")
        assert not matcher("src/x.test.ts")

    def test_empty_include_accepts_everything(self):
        assert ScanMatcher()("any/file.txt")


class TestScan:
    def test_excluded_file_never_yielded(self, tmp_path):
        write(tmp_path / "src" / "x.ts", "")
        write(tmp_path / "src" / "x.test.ts", "")
        found = relative(scan(str(tmp_path), ["**/*.ts"], ["**/*.test.ts"]), tmp_path)
        assert found == ["src/x.ts"]

    def test_paths_are_absolute_and_ordered(self, tmp_path):
        for name in ["b.js", "a.js", "sub/c.js", "sub/a.js"]:
            write(tmp_path / name, "")
        found = list(scan(str(tmp_path)))
        assert all(os.path.isabs(p) for p in found)
        assert relative(found, tmp_path) == ["a.js", "b.js", "sub/a.js", "sub/c.js"]

    def test_restartable_and_deterministic(self, tmp_path):
        for name in ["one.ts", "two/three.ts"]:
            write(tmp_path / name, "")
        files = scan(str(tmp_path))
        assert list(files) == list(files)

    def test_ignored_directories_are_pruned(self, tmp_path):
        write(tmp_path / "node_modules" / "pkg" / "a.js", "")
        write(tmp_path / ".git" / "config", "")
        write(tmp_path / "app.js", "")
        assert relative(scan(str(tmp_path)), tmp_path) == ["app.js"]
        assert "node_modules/pkg/a.js" in relative(scan(str(tmp_path), ignored_dirs=()), tmp_path)

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_symlink_cycle_terminates(self, tmp_path):
        write(tmp_path / "src" / "a.ts", "")
        try:
            os.symlink(str(tmp_path / "src"), str(tmp_path / "src" / "loop"), target_is_directory=True)
        except OSError:
            pytest.skip("cannot create symlinks here")
        assert relative(scan(str(tmp_path)), tmp_path) == ["src/a.ts"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_broken_symlink_skipped(self, tmp_path):
        write(tmp_path / "ok.ts", "")
        try:
            os.symlink(str(tmp_path / "missing.ts"), str(tmp_path / "dangling.ts"))
        except OSError:
            pytest.skip("cannot create symlinks here")
        assert relative(scan(str(tmp_path)), tmp_path) == ["ok.ts"]


class RecordingLogger:
    def __init__(self):
        self.events = []

    def warning(self, event, **kw):
        self.events.append((event, kw))

    def debug(self, event, **kw):
        pass


class TestUnreadableDirectories:
    def test_unlistable_directory_skipped_with_warning(self, tmp_path, monkeypatch):
        write(tmp_path / "a" / "one.ts", "")
        write(tmp_path / "locked" / "secret.ts", "")
        write(tmp_path / "z" / "two.ts", "")
        real_scandir = os.scandir
        locked = str(tmp_path / "locked")

        def scandir(path):
            if os.path.abspath(path) == locked:
                raise PermissionError(13, "Permission denied", path)
            return real_scandir(path)

        recorder = RecordingLogger()
        monkeypatch.setattr(os, "scandir", scandir)
        monkeypatch.setattr("keysync.scanner.logger", recorder)

        assert relative(scan(str(tmp_path)), tmp_path) == ["a/one.ts", "z/two.ts"]
        assert [(event, kw["path"]) for event, kw in recorder.events] == [("Cannot list directory", locked)]

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0, reason="needs a non-root POSIX user"
    )
    def test_permission_denied_directory(self, tmp_path):
        write(tmp_path / "a.ts", "")
        write(tmp_path / "locked" / "secret.ts", "")
        write(tmp_path / "sibling" / "b.ts", "")
        os.chmod(str(tmp_path / "locked"), 0)
        try:
            assert relative(scan(str(tmp_path)), tmp_path) == ["a.ts", "sibling/b.ts"]
        finally:
            os.chmod(str(tmp_path / "locked"), 0o755)
