import io
import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from typing import List, Optional

from dockyard.config import config
from dockyard.errors import (
    CatalogParseError,
    FileSystemError,
    NoAppsFolderFound,
    SizeLimitExceeded,
    ZipSlipDetected,
)

logger = logging.getLogger(__name__)

APPS_FOLDER_NAME = "Apps"


@dataclass
class ExtractionReport:
    written: List[str] = field(default_factory=list)
    skipped: List[ZipSlipDetected] = field(default_factory=list)


def resolve_member_path(destination_dir: str, member_name: str) -> str:
    """Return the absolute target for ``member_name`` under ``destination_dir``.

    Raises ``ZipSlipDetected`` when the entry would land outside the
    destination, whether through ``..`` segments, an absolute path or a drive
    letter.
    """
    root = os.path.realpath(destination_dir)
    normalized = member_name.replace("\\", "/")
    drive, _ = os.path.splitdrive(normalized)
    if normalized.startswith("/") or drive or (len(normalized) > 1 and normalized[1] == ":"):
        raise ZipSlipDetected(member_name)

    target = os.path.realpath(os.path.join(root, *normalized.split("/")))
    relative = os.path.relpath(target, root)
    if relative == os.pardir or relative.startswith(os.pardir + os.sep) or os.path.isabs(relative):
        raise ZipSlipDetected(member_name)
    return target


class SecureArchiveExtractor:
    def __init__(
        self,
        max_bytes: Optional[int] = None,
        max_entries: Optional[int] = None,
        apps_folder_name: str = APPS_FOLDER_NAME,
    ):
        self.max_bytes = max_bytes or config.archive_max_bytes
        self.max_entries = max_entries or config.archive_max_entries
        self.apps_folder_name = apps_folder_name

    def extract(self, archive_bytes: bytes, destination_dir: str) -> ExtractionReport:
        try:
            archive = zipfile.ZipFile(io.BytesIO(archive_bytes))
        except zipfile.BadZipFile as exc:
            raise CatalogParseError(f"Invalid ZIP archive: {exc}") from exc

        report = ExtractionReport()
        with archive:
            members = archive.infolist()
            self._check_limits(members)

            try:
                os.makedirs(destination_dir, exist_ok=True)
            except OSError as exc:
                raise FileSystemError(f"Cannot create {destination_dir}: {exc}") from exc

            for member in members:
                try:
                    target = resolve_member_path(destination_dir, member.filename)
                except ZipSlipDetected as exc:
                    logger.warning("Skipping unsafe archive entry: %s", member.filename)
                    report.skipped.append(exc)
                    continue
                if target == os.path.realpath(destination_dir):
                    continue

                try:
                    if member.is_dir():
                        os.makedirs(target, exist_ok=True)
                        continue
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    with archive.open(member) as src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                except OSError as exc:
                    raise FileSystemError(
                        f"Failed to extract '{member.filename}': {exc}"
                    ) from exc
                except (zipfile.BadZipFile, RuntimeError) as exc:
                    raise CatalogParseError(
                        f"Corrupt archive entry '{member.filename}': {exc}"
                    ) from exc
                report.written.append(member.filename)

        return report

    def _check_limits(self, members):
        if len(members) > self.max_entries:
            raise SizeLimitExceeded(
                f"Archive has {len(members)} entries, limit is {self.max_entries}",
                self.max_entries,
            )
        total = sum(member.file_size for member in members)
        if total > self.max_bytes:
            raise SizeLimitExceeded(
                f"Archive expands to {total} bytes, limit is {self.max_bytes}",
                self.max_bytes,
            )

    def locate_apps_folder(self, root: str) -> str:
        """Find the bundle folder at the archive root or inside one wrapper."""
        direct = os.path.join(root, self.apps_folder_name)
        if os.path.isdir(direct):
            return direct

        try:
            entries = sorted(os.listdir(root))
        except OSError as exc:
            raise FileSystemError(f"Cannot list {root}: {exc}") from exc

        for entry in entries:
            nested = os.path.join(root, entry, self.apps_folder_name)
            if os.path.isdir(os.path.join(root, entry)) and os.path.isdir(nested):
                return nested

        raise NoAppsFolderFound(
            f'No "{self.apps_folder_name}" folder found in the ZIP file.'
        )

    def install_archive(self, archive_bytes: bytes, cache_dir: str) -> ExtractionReport:
        """Extract into a staging directory and publish the bundle folder.

        The previous contents of ``cache_dir`` are replaced only once the new
        bundle folder has been located; the staging directory is always
        removed.
        """
        parent = os.path.dirname(os.path.abspath(cache_dir))
        try:
            os.makedirs(parent, exist_ok=True)
            staging = tempfile.mkdtemp(prefix=".staging-", dir=parent)
        except OSError as exc:
            raise FileSystemError(f"Cannot create staging directory in {parent}: {exc}") from exc

        try:
            report = self.extract(archive_bytes, staging)
            apps_dir = self.locate_apps_folder(staging)
            try:
                if os.path.exists(cache_dir):
                    shutil.rmtree(cache_dir)
                shutil.copytree(apps_dir, cache_dir)
            except OSError as exc:
                raise FileSystemError(f"Failed to publish bundles to {cache_dir}: {exc}") from exc
            logger.info(
                "Extracted %d entries to %s (%d skipped)",
                len(report.written),
                cache_dir,
                len(report.skipped),
            )
            return report
        finally:
            shutil.rmtree(staging, ignore_errors=True)
