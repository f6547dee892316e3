"""Tests for config module."""

import pytest

from watchman_watcher.config import WatcherOptions


class TestWatcherOptions:
    """Tests for WatcherOptions class."""

    def test_default_values(self):
        options = WatcherOptions()
        assert options.globs == []
        assert options.dot is False
        assert options.ignored is None
        assert options.defer_states == ["hg.update"]
        assert options.sockpath is None
        assert options.timeout == 30.0
        assert options.reconnect_delay_ms == 0
        assert options.max_reconnects is None

    def test_custom_values(self):
        options = WatcherOptions(
            globs=["*.js"],
            dot=True,
            defer_states=["hg.update", "git.rebase"],
            sockpath="/tmp/watchman.sock",
            reconnect_delay_ms=250,
            max_reconnects=5,
        )
        assert options.globs == ["*.js"]
        assert options.dot is True
        assert options.defer_states == ["hg.update", "git.rebase"]
        assert options.sockpath == "/tmp/watchman.sock"
        assert options.reconnect_delay_ms == 250
        assert options.max_reconnects == 5

    def test_single_glob_string_becomes_list(self):
        options = WatcherOptions(globs="*.js")
        assert options.globs == ["*.js"]


class TestIgnore:
    """Tests for the ignore predicate."""

    def test_no_ignore(self):
        options = WatcherOptions()
        assert options.has_ignore is False
        assert options.do_ignore("anything.txt") is False

    def test_empty_ignore_list(self):
        options = WatcherOptions(ignored=[])
        assert options.has_ignore is False

    def test_ignore_callable(self):
        options = WatcherOptions(ignored=lambda path: path.endswith(".log"))
        assert options.has_ignore is True
        assert options.do_ignore("debug.log") is True
        assert options.do_ignore("main.py") is False

    def test_ignore_patterns(self):
        options = WatcherOptions(ignored=["*.log", "node_modules/"])
        assert options.has_ignore is True
        assert options.do_ignore("debug.log") is True
        assert options.do_ignore("sub/dir/debug.log") is True
        assert options.do_ignore("node_modules/pkg/index.js") is True
        assert options.do_ignore("src/index.js") is False


class TestIsFileIncluded:
    """Tests for WatcherOptions.is_file_included."""

    def test_no_globs_excludes_dotfiles(self):
        options = WatcherOptions()
        assert options.is_file_included("src/a.js") is True
        assert options.is_file_included(".eslintrc") is False
        assert options.is_file_included(".git/config") is False
        assert options.is_file_included("src/.cache/file") is False

    def test_no_globs_with_dot(self):
        options = WatcherOptions(dot=True)
        assert options.is_file_included(".eslintrc") is True
        assert options.is_file_included("src/.cache/file") is True

    def test_globs(self):
        options = WatcherOptions(globs=["*.js"])
        assert options.is_file_included("a.js") is True
        assert options.is_file_included("src/deep/a.js") is True
        assert options.is_file_included("a.css") is False

    def test_globs_exclude_dotfiles_without_dot(self):
        options = WatcherOptions(globs=["*.js"])
        assert options.is_file_included(".hidden/a.js") is False

    def test_globs_with_dot(self):
        options = WatcherOptions(globs=["*.js"], dot=True)
        assert options.is_file_included(".hidden/a.js") is True

    def test_ignore_wins_over_globs(self):
        options = WatcherOptions(globs=["*.js"], ignored=["vendor/"])
        assert options.is_file_included("src/a.js") is True
        assert options.is_file_included("vendor/a.js") is False


class TestMutation:
    """Tests for options changed after construction."""

    def test_globs_changed_after_construction(self):
        options = WatcherOptions(globs=["*.js"])
        assert options.is_file_included("a.css") is False

        options.globs = ["*.css"]

        assert options.is_file_included("a.css") is True
        assert options.is_file_included("a.js") is False

    def test_globs_cleared_after_construction(self):
        options = WatcherOptions(globs=["*.js"])
        options.globs = []
        assert options.is_file_included("a.css") is True

    def test_ignored_changed_after_construction(self):
        options = WatcherOptions()
        assert options.has_ignore is False

        options.ignored = ["*.log"]

        assert options.has_ignore is True
        assert options.do_ignore("debug.log") is True
        options.ignored.append("*.tmp")
        assert options.do_ignore("scratch.tmp") is True
