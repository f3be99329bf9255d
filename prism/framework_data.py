# prism/framework_data.py
# Created: 2026-10-16
# Purpose: Read-only access to the exported prism.frameworks document

"""
Framework data source.

The document is a MongoDB export of the prism.frameworks collection, so ids
arrive in extended JSON form ({"$oid": "..."}). bson.json_util decodes those
into ObjectId values; everything handed out of this module is plain str.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from bson import json_util

from prism.config import APP_CONFIG
from prism.errors import DataLoadError
from prism.merge_agent.question_models import Framework, RawQuestion


logger = logging.getLogger(__name__)


class FrameworkRepository:
    """Loads the framework document once and serves lookups by name."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else APP_CONFIG.data.frameworks_path
        self._documents: Optional[List[Dict[str, Any]]] = None
        self._lock = threading.Lock()

    def _load(self) -> List[Dict[str, Any]]:
        with self._lock:
            if self._documents is not None:
                return self._documents

            try:
                raw = self.path.read_text(encoding="utf-8")
            except OSError as e:
                logger.error(f"Error loading frameworks from {self.path}: {e}")
                raise DataLoadError(f"Failed to load frameworks: {e}") from e

            try:
                data = json_util.loads(raw)
            except ValueError as e:
                logger.error(f"Malformed framework document {self.path}: {e}")
                raise DataLoadError(f"Malformed framework document: {e}") from e

            if not isinstance(data, list):
                raise DataLoadError("Framework document must be a JSON array")

            self._documents = [item for item in data if isinstance(item, dict)]
            logger.info(f"Loaded {len(self._documents)} frameworks from {self.path}")
            return self._documents

    def reload(self) -> None:
        with self._lock:
            self._documents = None

    def _find(self, name: str) -> Optional[Dict[str, Any]]:
        for item in self._load():
            if item.get("name") == name:
                return item
        return None

    def load_frameworks(self) -> List[Framework]:
        frameworks = []
        for item in self._load():
            frameworks.append(Framework(
                id=str(item.get("_id", "")),
                name=str(item.get("name", "")),
                question_count=len(item.get("questions") or []),
                description=item.get("description"),
            ))
        return frameworks

    def get_questions_for_framework(self, name: str) -> List[RawQuestion]:
        """Questions of one framework; empty when the name is unknown."""
        framework = self._find(name)
        if framework is None:
            logger.warning(f"Unknown framework requested: {name}")
            return []
        return [
            RawQuestion.from_dict(record)
            for record in framework.get("questions") or []
            if isinstance(record, dict)
        ]

    def get_framework_description(self, name: str) -> str:
        framework = self._find(name)
        if framework is None:
            return ""
        return framework.get("description") or ""


# Global instance for convenience
_repository: Optional[FrameworkRepository] = None


def get_repository() -> FrameworkRepository:
    global _repository
    if _repository is None:
        _repository = FrameworkRepository()
    return _repository


__all__ = ["FrameworkRepository", "get_repository"]
