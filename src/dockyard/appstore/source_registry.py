import json
import logging
import os
import tempfile
import threading
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from dockyard.appstore.models import Source, SourceKind, SourceStatus, SourceVariant
from dockyard.errors import (
    DuplicateSource,
    FileSystemError,
    SourceNotFound,
    SourceValidationError,
)

logger = logging.getLogger(__name__)


def derive_kind(url: str) -> SourceKind:
    """Archive sources are recognised by a ``.zip`` path suffix."""
    path = urlparse(url).path or url
    if path.lower().endswith(".zip"):
        return SourceKind.ARCHIVE
    return SourceKind.DECLARATIVE_JSON


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SourceRegistry:
    """Ordered list of catalog sources persisted as one JSON document.

    Every mutation rewrites the whole file; readers get copies so callers can
    not mutate the registry state behind its lock.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._sources: Optional[List[Source]] = None

    def list_sources(self) -> List[Source]:
        with self._lock:
            return [source.model_copy() for source in self._load()]

    def get_source(self, source_id: str) -> Source:
        with self._lock:
            for source in self._load():
                if source.id == source_id:
                    return source.model_copy()
        raise SourceNotFound(f"Source '{source_id}' not found")

    def add_source(
        self,
        url: str,
        variant: Optional[SourceVariant] = None,
        name: Optional[str] = None,
    ) -> Source:
        url = (url or "").strip()
        if not url:
            raise SourceValidationError("URL is required")

        try:
            source = Source(
                id=str(uuid.uuid4()),
                url=url,
                kind=derive_kind(url),
                variant=variant,
                name=name,
                status=SourceStatus.PENDING,
                updated_at=utc_now_iso(),
            )
        except ValidationError as exc:
            raise SourceValidationError(_first_error(exc)) from exc

        with self._lock:
            sources = list(self._load())
            if any(existing.url == url for existing in sources):
                raise DuplicateSource("Source with this URL already exists")
            sources.append(source)
            self._save(sources)

        logger.info("Registered source %s (%s) for %s", source.id, source.kind.value, url)
        return source.model_copy()

    def update_source(self, source: Source) -> Source:
        with self._lock:
            sources = list(self._load())
            for index, existing in enumerate(sources):
                if existing.id == source.id:
                    sources[index] = source.model_copy()
                    self._save(sources)
                    return source
        raise SourceNotFound(f"Source '{source.id}' not found")

    def remove_source(self, source_id: str) -> Source:
        with self._lock:
            sources = self._load()
            remaining = [source for source in sources if source.id != source_id]
            if len(remaining) == len(sources):
                raise SourceNotFound(f"Source '{source_id}' not found")
            removed = next(source for source in sources if source.id == source_id)
            self._save(remaining)
        logger.info("Removed source %s", source_id)
        return removed

    def _load(self) -> List[Source]:
        if self._sources is not None:
            return self._sources

        if not os.path.exists(self.path):
            self._sources = []
            return self._sources

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Error reading sources file %s: %s", self.path, exc)
            self._sources = []
            return self._sources

        sources = []
        for item in raw if isinstance(raw, list) else []:
            try:
                sources.append(Source.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping invalid source record %r: %s", item, exc)
        self._sources = sources
        return self._sources

    def _save(self, sources: List[Source]):
        directory = os.path.dirname(os.path.abspath(self.path))
        payload = [source.model_dump(mode="json") for source in sources]
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".sources-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise FileSystemError(f"Failed to write sources file {self.path}: {exc}") from exc
        self._sources = sources


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    message = errors[0].get("msg", str(exc))
    return message.removeprefix("Value error, ")
