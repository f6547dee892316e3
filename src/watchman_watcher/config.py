"""Configuration for the watchman watcher package."""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

import pathspec


IgnoreOption = Union[None, Callable[[str], bool], List[str]]


def _has_dot_segment(relative_path: str) -> bool:
    return any(part.startswith(".") for part in relative_path.split("/") if part)


@dataclass
class WatcherOptions:
    """
    Configuration options for a watchman watcher.

    Attributes:
        globs: Glob patterns a file must match to be reported
        dot: Whether files and directories starting with a dot are reported
        ignored: Callable or list of glob patterns for paths to ignore
        defer_states: Watchman state names during which the daemon defers
            notifications (e.g. "hg.update")
        sockpath: Path to the watchman socket (discovered when None)
        timeout: Socket timeout in seconds for daemon commands
        reconnect_delay_ms: Delay before reconnecting after a lost connection
        max_reconnects: Give up after this many reconnects (None for no limit)
    """
    globs: List[str] = field(default_factory=list)
    dot: bool = False
    ignored: IgnoreOption = None
    defer_states: List[str] = field(default_factory=lambda: ["hg.update"])
    sockpath: Optional[str] = None
    timeout: float = 30.0
    reconnect_delay_ms: int = 0
    max_reconnects: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.globs, str):
            self.globs = [self.globs]
        self._glob_cache = None
        self._ignore_cache = None

    def _glob_spec(self) -> Optional[pathspec.PathSpec]:
        """Compile the current globs; rebuilt whenever the field changes."""
        globs = [self.globs] if isinstance(self.globs, str) else self.globs
        key = tuple(globs or ())
        if self._glob_cache is None or self._glob_cache[0] != key:
            spec = pathspec.PathSpec.from_lines("gitwildmatch", key) if key else None
            self._glob_cache = (key, spec)
        return self._glob_cache[1]

    def _ignore_func(self) -> Optional[Callable[[str], bool]]:
        if callable(self.ignored):
            return self.ignored
        if not self.ignored:
            return None
        key = tuple(self.ignored)
        if self._ignore_cache is None or self._ignore_cache[0] != key:
            spec = pathspec.PathSpec.from_lines("gitwildmatch", key)
            self._ignore_cache = (key, spec.match_file)
        return self._ignore_cache[1]

    @property
    def has_ignore(self) -> bool:
        """Whether an ignore predicate is configured."""
        return self._ignore_func() is not None

    def do_ignore(self, relative_path: str) -> bool:
        """
        Check if a path is excluded by the ignore predicate.

        Args:
            relative_path: Path relative to the watched directory

        Returns:
            True if the path should be ignored
        """
        ignore = self._ignore_func()
        if ignore is None:
            return False
        return bool(ignore(relative_path))

    def is_file_included(self, relative_path: str) -> bool:
        """
        Check if a path passes the ignore, glob and dotfile filters.

        Args:
            relative_path: Path relative to the watched directory

        Returns:
            True if events for the path should be reported
        """
        if self.do_ignore(relative_path):
            return False
        if not self.dot and _has_dot_segment(relative_path):
            return False
        glob_spec = self._glob_spec()
        if glob_spec is not None:
            return glob_spec.match_file(relative_path)
        return True
