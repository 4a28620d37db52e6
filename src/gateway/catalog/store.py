"""
Snapshot store.

Holds the current ConfigSnapshot and swaps in a new one when the
configuration documents change on disk. Snapshots are never mutated;
callers take one per request and pass it explicitly.
"""

import logging
import os
import threading

from gateway.catalog.parser import CatalogParser
from gateway.catalog.schema import ConfigSnapshot
from gateway.logic.exceptions import ConfigError

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Thread-safe holder of the current configuration snapshot.

    Usage:
        store = SnapshotStore(parser)
        snapshot = store.current()
    """

    def __init__(self, parser: CatalogParser) -> None:
        """
        Initialize store and load the first snapshot.

        Args:
            parser: Parser for the configuration directory.

        Raises:
            ConfigError: If the initial configuration cannot be loaded.
        """
        self._parser = parser
        self._lock = threading.Lock()
        self._fingerprint = self._compute_fingerprint()
        self._snapshot = parser.load()

    def _compute_fingerprint(self) -> tuple[tuple[str, int, int], ...]:
        fingerprint = []
        for path in self._parser.document_paths():
            try:
                stat = os.stat(path)
            except FileNotFoundError:
                fingerprint.append((str(path), -1, -1))
                continue
            fingerprint.append((str(path), stat.st_mtime_ns, stat.st_size))
        return tuple(fingerprint)

    def current(self) -> ConfigSnapshot:
        """
        Get the current snapshot, reloading first if any document changed.

        A document that fails to load leaves the previous snapshot in place.

        Returns:
            The latest valid snapshot.
        """
        fingerprint = self._compute_fingerprint()
        with self._lock:
            if fingerprint == self._fingerprint:
                return self._snapshot
            try:
                self._snapshot = self._parser.load()
                logger.info("🔄 Configuration reloaded")
            except ConfigError as e:
                logger.error("❌ Configuration reload failed, keeping previous snapshot: %s", e)
            self._fingerprint = fingerprint
            return self._snapshot

    def reload(self) -> ConfigSnapshot:
        """
        Force a reload and return the new snapshot.

        Returns:
            Freshly loaded snapshot.

        Raises:
            ConfigError: If the configuration is invalid; the previous
                snapshot stays current.
        """
        with self._lock:
            fingerprint = self._compute_fingerprint()
            snapshot = self._parser.load()
            self._snapshot = snapshot
            self._fingerprint = fingerprint
            return snapshot
