"""Turn registered catalog sources into ``Application`` records.

Each ``(kind, variant)`` pair maps to exactly one strategy. Archive strategies
read the bundle folders cached under the storage directory; JSON strategies
fetch the source document on every call.
"""

import logging
import os
import re
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from dockyard.appstore.compose import (
    METADATA_KEY,
    ComposeParseError,
    dump_compose_yaml,
    find_compose_file,
    normalize_bind_volumes,
    normalize_port_entry,
    parse_compose_yaml,
    pick_localized,
    strip_extension_key,
)
from dockyard.appstore.fetcher import SafeFetcher
from dockyard.appstore.models import Application, Source, SourceKind, SourceVariant
from dockyard.appstore.settings_store import TOKEN_PREFIX
from dockyard.errors import CatalogParseError, DockyardError

logger = logging.getLogger(__name__)

ICON_PATTERN = re.compile(r"\.(png|jpg|jpeg|svg|webp)$", re.IGNORECASE)
README_PATTERN = re.compile(r"^readme(\.(md|txt|markdown))?$", re.IGNORECASE)
SCREENSHOT_PATTERN = re.compile(r"^screenshot-\d+\.(png|jpg|jpeg|webp)$", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"(\d+)")

PUBLIC_STORAGE_PREFIX = "/storage"
PLAIN_JSON_NAMESPACE = uuid.UUID("6f1c1c4e-3f47-4a43-9b7e-0b5d3c8f2a11")


def bundle_public_path(source_id: str, bundle_name: str) -> str:
    return f"{PUBLIC_STORAGE_PREFIX}/{source_id}/{bundle_name}"


def screenshot_index(filename: str) -> int:
    match = NUMBER_PATTERN.search(filename)
    return int(match.group(1)) if match else 0


def resolve_asset_reference(value: Optional[str], public_path: str) -> Optional[str]:
    if not value:
        return None
    parsed = urlparse(value)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return value
    relative = value[2:] if value.startswith("./") else value
    return f"{public_path}/{relative.lstrip('/')}"


class Normalizer(ABC):
    @abstractmethod
    def normalize(self, source: Source) -> List[Application]:
        ...


class GenericBundleNormalizer(Normalizer):
    """One application per bundle folder holding a compose file."""

    def __init__(self, storage_directory: str):
        self.storage_directory = storage_directory

    def source_directory(self, source: Source) -> str:
        return os.path.join(self.storage_directory, source.id)

    def normalize(self, source: Source) -> List[Application]:
        source_dir = self.source_directory(source)
        if not os.path.isdir(source_dir):
            logger.warning("No extracted bundles for source %s at %s", source.id, source_dir)
            return []

        apps: List[Application] = []
        for bundle_name in sorted(os.listdir(source_dir)):
            bundle_dir = os.path.join(source_dir, bundle_name)
            if not os.path.isdir(bundle_dir):
                continue
            try:
                app = self.normalize_bundle(source, bundle_name, bundle_dir)
            except (CatalogParseError, ValidationError, OSError) as exc:
                logger.warning(
                    "Skipping bundle %s in source %s: %s", bundle_name, source.id, exc
                )
                continue
            if app is not None:
                apps.append(app)
        return apps

    def normalize_bundle(
        self, source: Source, bundle_name: str, bundle_dir: str
    ) -> Optional[Application]:
        files = sorted(os.listdir(bundle_dir))
        compose_file = find_compose_file(files)
        if not compose_file:
            return None

        public_path = bundle_public_path(source.id, bundle_name)
        icon = next((f for f in files if ICON_PATTERN.search(f)), None)
        screenshots = sorted(
            (f for f in files if SCREENSHOT_PATTERN.match(f)), key=screenshot_index
        )

        return Application(
            id=f"{source.id}-{bundle_name}",
            source_id=source.id,
            name=bundle_name,
            description=self._read_description(bundle_dir, files, bundle_name),
            icon_url=f"{public_path}/{icon}" if icon else None,
            screenshots=[f"{public_path}/{f}" for f in screenshots],
            compose_path=f"{public_path}/{compose_file}",
        )

    def _read_description(self, bundle_dir: str, files: List[str], bundle_name: str) -> Optional[str]:
        readme = next((f for f in files if README_PATTERN.match(f)), None)
        if not readme:
            return None
        try:
            with open(os.path.join(bundle_dir, readme), "r", encoding="utf-8", errors="replace") as f:
                return f.read()
        except OSError as exc:
            logger.error("Error reading readme for %s: %s", bundle_name, exc)
            return None


class MetadataBundleNormalizer(GenericBundleNormalizer):
    """Bundles whose compose file embeds store metadata under ``x-casaos``."""

    def normalize_bundle(
        self, source: Source, bundle_name: str, bundle_dir: str
    ) -> Optional[Application]:
        files = sorted(os.listdir(bundle_dir))
        compose_file = find_compose_file(files)
        if not compose_file:
            return None

        try:
            with open(os.path.join(bundle_dir, compose_file), "r", encoding="utf-8") as f:
                compose_data = parse_compose_yaml(f.read())
        except (ComposeParseError, UnicodeDecodeError) as exc:
            raise CatalogParseError(str(exc)) from exc

        metadata = compose_data.get(METADATA_KEY)
        if not isinstance(metadata, dict):
            return super().normalize_bundle(source, bundle_name, bundle_dir)

        public_path = bundle_public_path(source.id, bundle_name)
        screenshots = metadata.get("screenshot_link") or []
        if not isinstance(screenshots, list):
            screenshots = [screenshots]

        cleaned = normalize_bind_volumes(strip_extension_key(compose_data))

        return Application(
            id=f"{source.id}-{bundle_name}",
            source_id=source.id,
            name=pick_localized(metadata.get("title")) or bundle_name,
            description=(
                pick_localized(metadata.get("description"))
                or pick_localized(metadata.get("tagline"))
            ),
            icon_url=resolve_asset_reference(pick_localized(metadata.get("icon")), public_path),
            screenshots=[
                ref
                for ref in (
                    resolve_asset_reference(pick_localized(item), public_path)
                    for item in screenshots
                )
                if ref
            ],
            compose_content=dump_compose_yaml(cleaned),
        )


class JsonNormalizer(Normalizer):
    def __init__(self, fetcher: SafeFetcher):
        self.fetcher = fetcher

    def normalize(self, source: Source) -> List[Application]:
        try:
            data = self.fetcher.fetch_json(source.url)
        except DockyardError as exc:
            logger.error("Error fetching apps from JSON source %s: %s", source.id, exc)
            return []

        if not isinstance(data, list):
            logger.error("JSON source %s did not return an array", source.id)
            return []

        build = self.item_builder(source)
        apps: List[Application] = []
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                logger.warning("Skipping non-object item %d in source %s", index, source.id)
                continue
            try:
                apps.append(build(item))
            except (CatalogParseError, ValidationError) as exc:
                logger.warning("Skipping item %d in source %s: %s", index, source.id, exc)
        return self._dedupe_ids(apps)

    @abstractmethod
    def item_builder(self, source: Source) -> Callable[[Dict[str, Any]], Application]:
        """Return the per-item conversion for one normalization pass."""

    def _dedupe_ids(self, apps: List[Application]) -> List[Application]:
        seen: Dict[str, int] = {}
        for app in apps:
            count = seen.get(app.id, 0)
            seen[app.id] = count + 1
            if count:
                app.id = f"{app.id}-{count + 1}"
        return apps


class DeclarativeTemplateNormalizer(JsonNormalizer):
    """Yacht/Portainer style templates synthesized into one-service stacks."""

    def __init__(self, fetcher: SafeFetcher, settings_provider: Callable[[], Dict[str, str]]):
        super().__init__(fetcher)
        self.settings_provider = settings_provider

    def item_builder(self, source: Source) -> Callable[[Dict[str, Any]], Application]:
        tokens = self.settings_provider() or {}

        def build(item: Dict[str, Any]) -> Application:
            name = item.get("name")
            if not name:
                raise CatalogParseError("Template item has no name")
            compose = build_template_compose(item, tokens)
            return Application(
                id=f"{source.id}-{name}",
                source_id=source.id,
                name=str(item.get("title") or name),
                description=item.get("description"),
                icon_url=item.get("logo"),
                compose_content=dump_compose_yaml(compose),
            )

        return build


def substitute_token(value: str, tokens: Dict[str, str]) -> str:
    if value in tokens:
        return tokens[value]
    if value.startswith(TOKEN_PREFIX):
        return "./" + value[len(TOKEN_PREFIX):]
    return value


def build_template_compose(item: Dict[str, Any], tokens: Dict[str, str]) -> Dict[str, Any]:
    service: Dict[str, Any] = {
        "image": item.get("image"),
        "restart": item.get("restart_policy") or "unless-stopped",
    }

    ports = item.get("ports")
    if isinstance(ports, list):
        service["ports"] = [p for p in (normalize_port_entry(entry) for entry in ports) if p]

    volumes = item.get("volumes")
    if isinstance(volumes, list):
        service["volumes"] = []
        for volume in volumes:
            if not isinstance(volume, dict):
                continue
            host_path = volume.get("bind")
            if isinstance(host_path, str):
                host_path = substitute_token(host_path, tokens)
            service["volumes"].append(f"{host_path}:{volume.get('container')}")

    env = item.get("env")
    if isinstance(env, list):
        service["environment"] = {}
        for entry in env:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            value = entry.get("default") or ""
            if isinstance(value, str) and value in tokens:
                value = tokens[value]
            service["environment"][str(entry["name"])] = value

    return {"version": "3", "services": {str(item["name"]): service}}


class PlainJsonNormalizer(JsonNormalizer):
    """Arrays of ready-made entries carrying compose text directly."""

    def item_builder(self, source: Source) -> Callable[[Dict[str, Any]], Application]:
        def build(item: Dict[str, Any]) -> Application:
            name = item.get("name") or "Unknown"
            # Stable across reads so links to an app survive catalog refreshes.
            key = item.get("id") or name
            return Application(
                id=str(uuid.uuid5(PLAIN_JSON_NAMESPACE, f"{source.id}/{key}")),
                source_id=source.id,
                name=str(name),
                description=item.get("description"),
                icon_url=item.get("icon") or item.get("image"),
                compose_content=item.get("docker_compose") or item.get("compose"),
            )

        return build


class CatalogNormalizer:
    def __init__(
        self,
        storage_directory: str,
        fetcher: SafeFetcher,
        settings_provider: Callable[[], Dict[str, str]],
    ):
        self._strategies = {
            (SourceKind.ARCHIVE, None): GenericBundleNormalizer(storage_directory),
            (SourceKind.ARCHIVE, SourceVariant.METADATA_ANNOTATED): MetadataBundleNormalizer(
                storage_directory
            ),
            (SourceKind.DECLARATIVE_JSON, None): PlainJsonNormalizer(fetcher),
            (
                SourceKind.DECLARATIVE_JSON,
                SourceVariant.DECLARATIVE_TEMPLATE,
            ): DeclarativeTemplateNormalizer(fetcher, settings_provider),
        }

    def strategy_for(self, source: Source) -> Normalizer:
        try:
            return self._strategies[(source.kind, source.variant)]
        except KeyError:
            raise CatalogParseError(
                f"No normalizer for {source.kind} source with variant {source.variant}"
            )

    def normalize(self, source: Source) -> List[Application]:
        return self.strategy_for(source).normalize(source)
