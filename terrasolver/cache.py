"""
Execution Cache: Cooldown window for module actions.

Remembers when each module last completed its action successfully, so a run
started shortly after another one skips modules that are already done.

File format (one record per line, order irrelevant):

    /abs/path/to/module::1718000000

Notes:
- dump() removes the file and writes it again. A crash between the two loses
  the cache; that only causes modules to run again, never a wrong order.
- There is no locking. Two concurrent runs sharing a cache file are not
  supported.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from terrasolver.errors import CacheDumpError, CacheLoadError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_FILE = ".terrasolver-cache"
RECORD_SEPARATOR = "::"


class ExecutionCache:
    """
    Persisted mapping of module path to last-success timestamp.

    Usage:
        cache = ExecutionCache(".terrasolver-cache")
        cache.load()
        if cache.expired(path, timedelta(minutes=30)):
            run(path)
            cache.add(path, datetime.now())
        cache.dump()
    """

    def __init__(
        self,
        cache_file: str = DEFAULT_CACHE_FILE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize an empty cache.

        Args:
            cache_file: Backing store path
            clock: Returns the current time (injectable for tests)
        """
        self.cache_file = cache_file
        self.clock = clock
        self._entries: Dict[str, datetime] = {}
        self._disabled = False

    @property
    def disabled(self) -> bool:
        return self._disabled

    def disable(self) -> None:
        """Turn the cache off for the rest of the process. Cannot be undone."""
        self._disabled = True

    def add(self, path: str, timestamp: datetime) -> None:
        """Record a successful action for path, replacing any previous entry."""
        if self._disabled:
            return
        self._entries[path] = timestamp

    def get(self, path: str) -> Optional[datetime]:
        return self._entries.get(path)

    def expired(self, path: str, ttl: timedelta) -> bool:
        """
        Check whether path must run again.

        Args:
            path: Module path
            ttl: Cooldown window

        Returns:
            True when disabled, when path has no entry, or when its entry is
            older than now - ttl
        """
        if self._disabled:
            return True

        timestamp = self._entries.get(path)
        if timestamp is None:
            return True

        return timestamp < self.clock() - ttl

    # ------------------------ Persistence ------------------------

    def load(self) -> None:
        """
        Read entries from the backing store.

        A missing file leaves the cache empty.

        Raises:
            CacheLoadError: If any record is malformed
        """
        if self._disabled:
            return

        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            logger.info("No cache file found, proceeding with new cache.")
            return
        except OSError as e:
            raise CacheLoadError(self.cache_file, 0, str(e)) from e

        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue

            path, sep, raw_timestamp = line.rpartition(RECORD_SEPARATOR)
            if not sep or not path:
                raise CacheLoadError(self.cache_file, number, f"malformed record: {line!r}")

            try:
                timestamp = datetime.fromtimestamp(int(raw_timestamp))
            except (OverflowError, OSError, ValueError):
                raise CacheLoadError(
                    self.cache_file, number, f"invalid timestamp: {raw_timestamp!r}"
                ) from None

            self.add(path, timestamp)

        logger.debug(f"Loaded {len(self._entries)} cache entries from {self.cache_file}")

    def dump(self) -> None:
        """
        Rewrite the backing store from the in-memory entries.

        Raises:
            CacheDumpError: If the file cannot be removed or written
        """
        if self._disabled:
            return

        content = "".join(
            f"{path}{RECORD_SEPARATOR}{int(timestamp.timestamp())}\n"
            for path, timestamp in sorted(self._entries.items())
        )

        try:
            try:
                os.remove(self.cache_file)
            except FileNotFoundError:
                pass
            with open(self.cache_file, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise CacheDumpError(f"error writing cache {self.cache_file}: {e}") from e

        logger.debug(f"Saved {len(self._entries)} cache entries to {self.cache_file}")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return path in self._entries
