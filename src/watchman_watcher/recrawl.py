"""Handling of error and warning fields on watchman responses."""

import logging
import re
from typing import Dict, Optional

from .exceptions import ProtocolError

logger = logging.getLogger(__name__)

RECRAWL_WARNING_RE = re.compile(
    r"Recrawled this watch (\d+) times?, most recently because:\n([^:]+)"
)


class WarningPolicy:
    """
    Checks daemon responses for errors and deduplicates their warnings.

    Watchman repeats its recrawl warning on every response until the watch
    is deleted, so a recrawl warning is only logged when its recrawl count
    for a root goes up. Other warnings are logged unless they repeat the
    last one logged.
    """

    def __init__(self):
        self._recrawl_counts: Dict[str, int] = {}
        self.last_warning: Optional[str] = None

    def is_recrawl_warning_dupe(self, warning) -> bool:
        """
        Check if a recrawl warning was already reported for its root.

        Args:
            warning: The warning field of a response

        Returns:
            True if the warning should be suppressed
        """
        if not isinstance(warning, str):
            return False

        match = RECRAWL_WARNING_RE.search(warning)
        if not match:
            return False

        count = int(match.group(1))
        root = match.group(2)

        seen = self._recrawl_counts.get(root)
        if seen is not None and seen >= count:
            return True

        self._recrawl_counts[root] = count
        return False

    def check(self, resp: dict, command: Optional[list] = None) -> bool:
        """
        Inspect a response for error and warning fields.

        Args:
            resp: Decoded response from the daemon
            command: The command that produced the response

        Returns:
            True if a warning was logged

        Raises:
            ProtocolError: If the response carries an error field
        """
        if "error" in resp:
            raise ProtocolError(str(resp["error"]), command)

        if "warning" not in resp:
            return False

        warning = resp["warning"]
        if self.is_recrawl_warning_dupe(warning):
            return False
        if warning == self.last_warning:
            return False

        self.last_warning = warning
        logger.warning(f"Watchman: {warning}")
        return True
