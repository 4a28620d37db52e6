"""
Allow-listed access to configuration documents on disk.

Every read and write is checked against a fixed list of document name
patterns before the filesystem is touched. Writes are serialized per path,
take a timestamped backup, and are re-parsed afterwards; a document that
fails the re-parse is rolled back to its previous content.
"""

import json
import logging
import os
import shutil
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from gateway.logic.exceptions import (
    ConfigError,
    ConfigNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    PathNotAllowedError,
)

logger = logging.getLogger(__name__)

ConfigurationDocument = dict[str, Any]
DocumentValidator = Callable[[str, ConfigurationDocument], None]

ALLOWED_PATTERNS: tuple[str, ...] = (
    "tier-*.json",
    "agents.json",
    "pricing-tiers.json",
    "routing.json",
)


def _match_pattern(pattern: str, path: str) -> bool:
    if "*" not in pattern:
        return path == pattern
    prefix, suffix = pattern.split("*", 1)
    if not (path.startswith(prefix) and path.endswith(suffix)):
        return False
    middle = path[len(prefix) : len(path) - len(suffix)]
    return bool(middle) and "/" not in middle


def is_path_allowed(path: str, patterns: tuple[str, ...] = ALLOWED_PATTERNS) -> bool:
    """
    Check a document path against the allow-list.

    Args:
        path: Path relative to the configuration directory.
        patterns: Exact names or single-"*" globs; "*" never matches "/".

    Returns:
        True if the path may be read or written.
    """
    if not path or "\\" in path or path.startswith("/") or os.path.isabs(path):
        return False
    if ".." in path.split("/"):
        return False
    return any(_match_pattern(pattern, path) for pattern in patterns)


class DocumentStore:
    """
    Reads and writes configuration documents under one directory.

    Usage:
        store = DocumentStore("config")
        tier = store.read("tier-free.json")
        store.update("tier-free.json", lambda doc: doc["features"].update(x=True))
    """

    def __init__(
        self,
        config_dir: str | Path,
        validator: DocumentValidator | None = None,
        patterns: tuple[str, ...] = ALLOWED_PATTERNS,
    ) -> None:
        """
        Initialize document store.

        Args:
            config_dir: Directory holding the documents.
            validator: Extra check run after each write; any exception it
                raises rolls the write back.
            patterns: Allowed document name patterns.
        """
        self.config_dir = Path(config_dir)
        self._validator = validator
        self._patterns = patterns
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def is_path_allowed(self, path: str) -> bool:
        """Check a path against this store's allow-list."""
        return is_path_allowed(path, self._patterns)

    def _check(self, path: str) -> Path:
        if not self.is_path_allowed(path):
            logger.warning("🚫 Rejected configuration path %r", path)
            raise PathNotAllowedError(path)
        return self.config_dir / path

    def _lock_for(self, path: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = threading.RLock()
                self._locks[path] = lock
            return lock

    def read(self, path: str) -> ConfigurationDocument:
        """
        Read and parse a document.

        Args:
            path: Allow-listed document path.

        Returns:
            Parsed JSON object.

        Raises:
            PathNotAllowedError: If the path is not allow-listed.
            ConfigNotFoundError: If the document does not exist.
            ConfigParseError: If the document is not a JSON object.
        """
        full_path = self._check(path)
        return self._read_file(path, full_path)

    def _read_file(self, path: str, full_path: Path) -> ConfigurationDocument:
        try:
            text = full_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ConfigNotFoundError(path) from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigParseError(path, str(e)) from e
        if not isinstance(data, dict):
            raise ConfigParseError(path, f"expected object, got {type(data).__name__}")
        return data

    def write(
        self,
        path: str,
        content: ConfigurationDocument | str,
        backup: bool = True,
    ) -> Path | None:
        """
        Write a document, then re-parse it.

        Args:
            path: Allow-listed document path.
            content: JSON object, or raw text written as-is.
            backup: Copy the current file to <path>.backup.<timestamp> first.

        Returns:
            Backup path, if one was made.

        Raises:
            PathNotAllowedError: If the path is not allow-listed.
            ConfigValidationError: If the written document does not parse
                or fails validation; the previous content is restored.
        """
        full_path = self._check(path)
        with self._lock_for(path):
            return self._write_locked(path, full_path, content, backup)

    def _write_locked(
        self,
        path: str,
        full_path: Path,
        content: ConfigurationDocument | str,
        backup: bool,
    ) -> Path | None:
        previous: bytes | None = None
        if full_path.exists():
            previous = full_path.read_bytes()

        backup_path = None
        if backup and previous is not None:
            stamp = time.time_ns()
            backup_path = full_path.with_name(f"{full_path.name}.backup.{stamp}")
            while backup_path.exists():
                stamp += 1
                backup_path = full_path.with_name(f"{full_path.name}.backup.{stamp}")
            shutil.copyfile(full_path, backup_path)
            logger.debug("💾 Backed up %s to %s", path, backup_path.name)

        text = content if isinstance(content, str) else json.dumps(content, indent=2) + "\n"
        full_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = full_path.with_name(f".{full_path.name}.tmp")
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, full_path)

        try:
            document = self._read_file(path, full_path)
            if self._validator is not None:
                self._validator(path, document)
        except Exception as e:
            # Any failure after the replace must leave the previous content on disk
            if previous is None:
                full_path.unlink(missing_ok=True)
            else:
                full_path.write_bytes(previous)
            reason = e.message if isinstance(e, ConfigError) else f"{type(e).__name__}: {e}"
            logger.error("❌ Rolled back %s after failed validation: %s", path, reason)
            raise ConfigValidationError(f"Invalid configuration written to {path}: {reason}") from e

        logger.info("📝 Updated %s", path)
        return backup_path

    def update(
        self,
        path: str,
        mutate: Callable[[ConfigurationDocument], Any],
        backup: bool = True,
        create: bool = False,
    ) -> ConfigurationDocument:
        """
        Read, modify and write a document under its lock.

        Args:
            path: Allow-listed document path.
            mutate: Function changing the document in place.
            backup: Whether to back up before writing.
            create: Start from an empty object when the document is missing.

        Returns:
            The written document.

        Raises:
            ConfigNotFoundError: If the document is missing and create is False.
        """
        full_path = self._check(path)
        with self._lock_for(path):
            try:
                document = self._read_file(path, full_path)
            except ConfigNotFoundError:
                if not create:
                    raise
                logger.info("🆕 Creating %s", path)
                document = {}
            mutate(document)
            self._write_locked(path, full_path, document, backup)
            return document
