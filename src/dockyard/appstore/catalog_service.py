import logging
import os
import shutil
from typing import List, Optional

from dockyard.appstore.archive import SecureArchiveExtractor
from dockyard.appstore.fetcher import SafeFetcher
from dockyard.appstore.models import Application, Source, SourceKind, SourceStatus, SourceVariant
from dockyard.appstore.normalizers import PUBLIC_STORAGE_PREFIX, CatalogNormalizer
from dockyard.appstore.settings_store import SettingsStore
from dockyard.appstore.source_registry import SourceRegistry, utc_now_iso
from dockyard.errors import CatalogParseError, DockyardError, FileSystemError

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(
        self,
        registry: SourceRegistry,
        settings: SettingsStore,
        storage_directory: str,
        fetcher: Optional[SafeFetcher] = None,
        extractor: Optional[SecureArchiveExtractor] = None,
    ):
        self.registry = registry
        self.settings = settings
        self.storage_directory = storage_directory
        self.fetcher = fetcher or SafeFetcher()
        self.extractor = extractor or SecureArchiveExtractor()
        self.normalizer = CatalogNormalizer(
            storage_directory=storage_directory,
            fetcher=self.fetcher,
            settings_provider=settings.tokens,
        )

    def source_cache_dir(self, source_id: str) -> str:
        return os.path.join(self.storage_directory, source_id)

    def add_source(
        self,
        url: str,
        variant: Optional[SourceVariant] = None,
        name: Optional[str] = None,
    ) -> Source:
        """Register a source and process it right away.

        The source stays registered when processing fails; the returned record
        then carries ``status=error`` and the failure message.
        """
        self.fetcher.validate((url or "").strip())
        source = self.registry.add_source(url, variant=variant, name=name)
        try:
            return self.process_source(source)
        except DockyardError:
            return self.registry.get_source(source.id)

    def refresh_source(self, source_id: str) -> Source:
        return self.process_source(self.registry.get_source(source_id))

    def remove_source(self, source_id: str) -> Source:
        removed = self.registry.remove_source(source_id)
        cache_dir = self.source_cache_dir(source_id)
        if os.path.isdir(cache_dir):
            shutil.rmtree(cache_dir, ignore_errors=True)
        return removed

    def process_source(self, source: Source) -> Source:
        """Fetch (and for archives, extract) a source and record the outcome."""
        try:
            if source.kind == SourceKind.ARCHIVE:
                payload = self.fetcher.fetch(source.url)
                self.extractor.install_archive(payload, self.source_cache_dir(source.id))
            else:
                # JSON catalogs are parsed on every read; only check reachability.
                self.fetcher.fetch_json(source.url)
        except DockyardError as exc:
            logger.error("Error processing source %s: %s", source.id, exc)
            self.registry.update_source(
                source.model_copy(
                    update={
                        "status": SourceStatus.ERROR,
                        "error": str(exc),
                        "updated_at": utc_now_iso(),
                    }
                )
            )
            raise

        updated = source.model_copy(
            update={
                "status": SourceStatus.SUCCESS,
                "error": None,
                "updated_at": utc_now_iso(),
            }
        )
        self.registry.update_source(updated)
        logger.info("Processed source %s", source.id)
        return updated

    def list_apps(self, q: Optional[str] = None, source_id: Optional[str] = None) -> List[Application]:
        apps: List[Application] = []
        for source in self.registry.list_sources():
            if source.status != SourceStatus.SUCCESS:
                continue
            if source_id and source.id != source_id:
                continue
            try:
                apps.extend(self.normalizer.normalize(source))
            except (DockyardError, OSError) as exc:
                logger.error("Error reading apps from source %s: %s", source.id, exc)

        if q:
            needle = q.lower()
            apps = [
                app
                for app in apps
                if needle in app.name.lower() or needle in (app.description or "").lower()
            ]
        return apps

    def get_app(self, app_id: str) -> Optional[Application]:
        for app in self.list_apps():
            if app.id == app_id:
                return app
        return None

    def read_compose(self, app: Application) -> str:
        if app.compose_content:
            return app.compose_content

        local_path = self.resolve_public_path(app.compose_path or "")
        try:
            with open(local_path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as exc:
            raise FileSystemError(f"Failed to read compose file for {app.id}: {exc}") from exc

    def resolve_public_path(self, public_path: str) -> str:
        """Map a ``/storage/...`` reference back onto the storage directory."""
        prefix = PUBLIC_STORAGE_PREFIX + "/"
        if not public_path.startswith(prefix):
            raise CatalogParseError(f"Not a storage reference: {public_path}")

        root = os.path.realpath(self.storage_directory)
        relative = public_path[len(prefix):]
        local_path = os.path.realpath(os.path.join(root, *relative.split("/")))
        if os.path.commonpath([root, local_path]) != root:
            raise CatalogParseError(f"Storage reference escapes storage directory: {public_path}")
        return local_path
