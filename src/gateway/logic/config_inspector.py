"""
Read-only checks over the configuration documents.

Backs the admin validate and summary endpoints. Nothing here writes to disk.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from gateway.catalog.parser import AGENTS_DOCUMENT, PRICING_DOCUMENT, CatalogParser
from gateway.logic.document_store import DocumentStore
from gateway.logic.exceptions import ConfigError, ConfigValidationError

logger = logging.getLogger(__name__)

# Top-level keys a document cannot do without
REQUIRED_SECTIONS: dict[str, str] = {
    AGENTS_DOCUMENT: "agents",
    PRICING_DOCUMENT: "pricing_tiers",
}

TIER_PREFIX = "tier-"
TIER_SUFFIX = ".json"


class ConfigInspector:
    """
    Validates documents and summarizes tier configuration.

    Usage:
        inspector = ConfigInspector(documents, parser)
        inspector.validate("pricing-tiers.json")
        inspector.summary()
    """

    def __init__(self, documents: DocumentStore, parser: CatalogParser) -> None:
        self._documents = documents
        self._parser = parser

    def validate(self, path: str | None = None) -> dict[str, Any]:
        """
        Check one document, then the catalog built from all of them.

        Args:
            path: Allow-listed document to check on its own first; None
                checks only the full catalog.

        Returns:
            {valid, message, path}. Configuration errors, including a path
            outside the allow-list, are reported as valid False.
        """
        try:
            if path is not None:
                document = self._documents.read(path)
                section = REQUIRED_SECTIONS.get(path)
                if section and section not in document:
                    raise ConfigValidationError(f"Missing {section} section")
            self._parser.load()
        except ConfigError as e:
            logger.warning("⚠️ Configuration check failed for %s: %s", path or "catalog", e.message)
            return {"valid": False, "message": e.message, "path": path}
        return {"valid": True, "message": "Configuration is valid", "path": path}

    def summary(self) -> dict[str, dict[str, Any]]:
        """
        Summarize every tier document on disk.

        Returns:
            Tier id -> {agents, features, models, lastModified}. A document
            that cannot be read maps to {error}.
        """
        tiers: dict[str, dict[str, Any]] = {}
        for file in sorted(self._documents.config_dir.glob(f"{TIER_PREFIX}*{TIER_SUFFIX}")):
            tier_id = file.name[len(TIER_PREFIX) : -len(TIER_SUFFIX)]
            try:
                doc = self._documents.read(file.name)
                modified = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
            except (ConfigError, OSError) as e:
                tiers[tier_id] = {"error": getattr(e, "message", str(e))}
                continue
            agents = doc.get("agents")
            tiers[tier_id] = {
                "agents": [a for a, on in agents.items() if on] if isinstance(agents, dict) else [],
                "features": list(doc.get("features") or {}),
                "models": list(doc.get("models") or {}),
                "lastModified": modified.isoformat(),
            }
        return tiers
