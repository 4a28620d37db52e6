"""Unit tests for the configuration document store."""

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest

from gateway.catalog.parser import CatalogParser
from gateway.logic.document_store import DocumentStore, is_path_allowed
from gateway.logic.exceptions import (
    ConfigNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    PathNotAllowedError,
)


class TestIsPathAllowed:
    """Tests for the path allow-list."""

    @pytest.mark.parametrize(
        "path",
        ["tier-free.json", "tier-enterprise.json", "agents.json", "pricing-tiers.json", "routing.json"],
    )
    def test_allowed(self, path) -> None:
        """Test allow-listed names."""
        assert is_path_allowed(path)

    @pytest.mark.parametrize(
        "path",
        [
            "",
            "secrets.json",
            "tier-.json",
            "tier-a/b.json",
            "../agents.json",
            "config/../agents.json",
            "/etc/agents.json",
            "tier-free.json.bak",
            "models.json",
            "tier-free.yaml",
        ],
    )
    def test_rejected(self, path) -> None:
        """Test everything else is rejected."""
        assert not is_path_allowed(path)


class TestDocumentStore:
    """Tests for DocumentStore."""

    def test_read(self, config_dir: Path) -> None:
        """Test reading a document."""
        doc = DocumentStore(config_dir).read("tier-free.json")
        assert doc["agents"]["science"] is True

    def test_read_missing(self, tmp_path: Path) -> None:
        """Test a missing document."""
        with pytest.raises(ConfigNotFoundError):
            DocumentStore(tmp_path).read("routing.json")

    def test_read_malformed(self, tmp_path: Path) -> None:
        """Test malformed JSON."""
        (tmp_path / "routing.json").write_text("[1, 2", encoding="utf-8")
        with pytest.raises(ConfigParseError):
            DocumentStore(tmp_path).read("routing.json")

    def test_disallowed_path_never_touches_filesystem(self, tmp_path: Path) -> None:
        """Test rejected paths fail before any file access."""
        store = DocumentStore(tmp_path)
        with patch("pathlib.Path.read_text") as read_text, patch(
            "pathlib.Path.write_text"
        ) as write_text, patch("pathlib.Path.exists") as exists:
            with pytest.raises(PathNotAllowedError):
                store.read("../etc/passwd")
            with pytest.raises(PathNotAllowedError):
                store.write("notes.txt", {"a": 1})

        read_text.assert_not_called()
        write_text.assert_not_called()
        exists.assert_not_called()
        assert list(tmp_path.iterdir()) == []

    def test_write_then_read_round_trip(self, config_dir: Path) -> None:
        """Test a written tier document reads back identically."""
        store = DocumentStore(config_dir)
        doc = store.read("tier-standard.json")
        doc["features"]["beta"] = True
        store.write("tier-standard.json", doc)

        assert store.read("tier-standard.json") == doc

    def test_write_creates_backup(self, config_dir: Path) -> None:
        """Test the previous content is backed up."""
        store = DocumentStore(config_dir)
        original = (config_dir / "routing.json").read_text(encoding="utf-8")

        backup = store.write("routing.json", {"routing": {"default_agent": "science"}})

        assert backup is not None
        assert backup.name.startswith("routing.json.backup.")
        assert backup.read_text(encoding="utf-8") == original

    def test_write_without_backup(self, config_dir: Path) -> None:
        """Test backups can be skipped."""
        store = DocumentStore(config_dir)
        assert store.write("routing.json", {"routing": {}}, backup=False) is None
        assert not list(config_dir.glob("routing.json.backup.*"))

    def test_malformed_write_rolled_back(self, config_dir: Path) -> None:
        """Test content that does not re-parse is rolled back."""
        store = DocumentStore(config_dir)
        original = (config_dir / "routing.json").read_text(encoding="utf-8")

        with pytest.raises(ConfigValidationError):
            store.write("routing.json", "{not json")

        assert (config_dir / "routing.json").read_text(encoding="utf-8") == original

    def test_new_malformed_document_removed(self, tmp_path: Path) -> None:
        """Test a failed write of a new document leaves nothing behind."""
        store = DocumentStore(tmp_path)
        with pytest.raises(ConfigValidationError):
            store.write("tier-new.json", "[]")
        assert not (tmp_path / "tier-new.json").exists()

    def test_validator_failure_rolled_back(self, config_dir: Path) -> None:
        """Test a validator error restores the previous content."""

        def reject(path: str, document: dict) -> None:
            raise ConfigValidationError("nope")

        store = DocumentStore(config_dir, validator=reject)
        before = json.loads((config_dir / "tier-free.json").read_text(encoding="utf-8"))

        with pytest.raises(ConfigValidationError, match="nope"):
            store.update("tier-free.json", lambda doc: doc.update(agents={}))

        assert store.read("tier-free.json") == before

    def test_update(self, config_dir: Path) -> None:
        """Test read-modify-write."""
        store = DocumentStore(config_dir)
        store.update("tier-free.json", lambda doc: doc["features"].update(dark_mode=True))
        assert store.read("tier-free.json")["features"]["dark_mode"] is True

    def test_update_missing_requires_create(self, tmp_path: Path) -> None:
        """Test update of a missing document."""
        store = DocumentStore(tmp_path)
        with pytest.raises(ConfigNotFoundError):
            store.update("tier-free.json", lambda doc: doc.update(a=1))

        store.update("tier-free.json", lambda doc: doc.update(a=1), create=True)
        assert store.read("tier-free.json") == {"a": 1}

    def test_structurally_invalid_write_rolled_back(
        self, config_dir: Path, parser: CatalogParser
    ) -> None:
        """Test a document the catalog cannot use is rolled back."""
        store = DocumentStore(config_dir, validator=lambda path, doc: parser.load())
        before = store.read("tier-free.json")

        with pytest.raises(ConfigValidationError):
            store.write("tier-free.json", {"agents": ["science"]})

        assert store.read("tier-free.json") == before
        parser.load()

    def test_unexpected_validator_error_rolled_back(self, config_dir: Path) -> None:
        """Test non-configuration errors from the validator also roll back."""

        def broken(path: str, document: dict) -> None:
            raise KeyError("models")

        store = DocumentStore(config_dir, validator=broken)
        before = store.read("tier-free.json")

        with pytest.raises(ConfigValidationError, match="KeyError"):
            store.update("tier-free.json", lambda doc: doc.update(agents={}))

        assert store.read("tier-free.json") == before


class TestConcurrentUpdates:
    """Tests for per-path write serialization."""

    def test_concurrent_updates_all_survive(self, config_dir: Path) -> None:
        """Test parallel read-modify-write calls on one path lose nothing."""
        store = DocumentStore(config_dir)
        count = 40

        def append(i: int) -> None:
            store.update(
                "tier-free.json",
                lambda doc: doc.setdefault("history", []).append(i),
            )

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(append, range(count)))

        doc = json.loads((config_dir / "tier-free.json").read_text(encoding="utf-8"))
        assert sorted(doc["history"]) == list(range(count))
        assert len(list(config_dir.glob("tier-free.json.backup.*"))) == count
