"""On-disk history of installed applications.

Layout under the deploy directory::

    <base>/<name>/docker-compose.yml                  legacy, unversioned
    <base>/<name>/<timestamp>/docker-compose.yml
    <base>/<name>/<timestamp>/app-details.json

Timestamps use a fixed-width UTC format (``2024-06-01T00-00-00-000Z``) so
that plain string ordering is chronological.
"""

import json
import logging
import os
import re
import shutil
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from dockyard.appstore.compose import DEFAULT_COMPOSE_FILENAME
from dockyard.deployments.models import Deployment, InstalledApp
from dockyard.errors import ConfigurationError, DeploymentNotFound, FileSystemError

logger = logging.getLogger(__name__)

DETAILS_FILENAME = "app-details.json"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"
UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
TIMESTAMP_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2})-(\d{3})Z$")


def sanitize_name(name: str) -> str:
    return UNSAFE_NAME_CHARS.sub("_", name)


def format_timestamp(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return f"{moment.strftime(TIMESTAMP_FORMAT)}-{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> Optional[datetime]:
    match = TIMESTAMP_PATTERN.match(value)
    if not match:
        return None
    moment = datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
    return moment.replace(microsecond=int(match.group(2)) * 1000, tzinfo=timezone.utc)


def resolve_latest(app_base_dir: str) -> Optional[str]:
    """Directory holding the current compose file for an app, if any."""
    if not os.path.isdir(app_base_dir):
        return None

    if os.path.isfile(os.path.join(app_base_dir, DEFAULT_COMPOSE_FILENAME)):
        return app_base_dir

    try:
        entries = [
            entry.name for entry in os.scandir(app_base_dir) if entry.is_dir()
        ]
    except OSError:
        return None

    for name in sorted(entries, reverse=True):
        candidate = os.path.join(app_base_dir, name)
        if os.path.isfile(os.path.join(candidate, DEFAULT_COMPOSE_FILENAME)):
            return candidate
    return None


class DeploymentStore:
    def __init__(self, base_directory: Optional[str]):
        self.base_directory = base_directory

    def _require_base(self) -> str:
        if not self.base_directory:
            raise ConfigurationError("Server deploy directory is not configured")
        return self.base_directory

    def app_dir(self, name: str) -> str:
        sanitized = sanitize_name(name or "")
        # An empty name would resolve to the deploy root shared by every app.
        if not sanitized:
            raise DeploymentNotFound(name)
        return os.path.join(self._require_base(), sanitized)

    def resolve_latest(self, app_base_dir: str) -> Optional[str]:
        return resolve_latest(app_base_dir)

    def create_version(self, app_base_dir: str, now: Optional[datetime] = None) -> str:
        """Create a version directory that sorts after every existing entry."""
        moment = now or datetime.now(timezone.utc)
        try:
            os.makedirs(app_base_dir, exist_ok=True)
            existing = sorted(os.listdir(app_base_dir))
        except OSError as exc:
            raise FileSystemError(f"Cannot prepare {app_base_dir}: {exc}") from exc

        name = format_timestamp(moment)
        latest = max((entry for entry in existing if parse_timestamp(entry)), default=None)
        if latest is not None and name <= latest:
            name = format_timestamp(parse_timestamp(latest) + timedelta(milliseconds=1))

        version_dir = os.path.join(app_base_dir, name)
        try:
            os.makedirs(version_dir)
        except OSError as exc:
            raise FileSystemError(f"Cannot create version directory {version_dir}: {exc}") from exc
        logger.info("Created deployment version %s", version_dir)
        return version_dir

    def get(self, name: str) -> Deployment:
        app_base_dir = self.app_dir(name)
        directory = self.resolve_latest(app_base_dir)
        if directory is None:
            raise DeploymentNotFound(name)
        timestamp = None if directory == app_base_dir else os.path.basename(directory)
        return Deployment(
            name=sanitize_name(name),
            timestamp=timestamp,
            directory=directory,
            compose_file=os.path.join(directory, DEFAULT_COMPOSE_FILENAME),
            details=_read_details(directory),
        )

    def list_versions(self, name: str) -> List[str]:
        return _versions_in(self.app_dir(name))

    def list_deployments(self) -> List[InstalledApp]:
        base = self.base_directory
        if not base or not os.path.isdir(base):
            return []

        apps = []
        for entry in sorted(os.scandir(base), key=lambda e: e.name):
            if not entry.is_dir():
                continue
            directory = self.resolve_latest(entry.path)
            apps.append(
                InstalledApp(
                    name=entry.name,
                    path=entry.path,
                    valid=directory is not None,
                    versions=_versions_in(entry.path),
                    details=_read_details(directory) if directory else {},
                )
            )
        return apps

    def install(self, details: Dict[str, Any], compose_content: str, name: Optional[str] = None) -> Deployment:
        """Write a new version holding the compose file and the app snapshot."""
        app_name = name or details.get("name")
        if not app_name:
            raise ValueError("An app name is required to install")
        app_base_dir = self.app_dir(app_name)
        self._migrate_legacy(app_base_dir)
        version_dir = self.create_version(app_base_dir)
        try:
            # The compose file marks a version as complete, so it goes last.
            _write_text(
                os.path.join(version_dir, DETAILS_FILENAME),
                json.dumps(details, indent=2),
            )
            _write_text(os.path.join(version_dir, DEFAULT_COMPOSE_FILENAME), compose_content)
        except OSError as exc:
            shutil.rmtree(version_dir, ignore_errors=True)
            raise FileSystemError(f"Failed to write deployment {version_dir}: {exc}") from exc
        return self.get(app_name)

    def _migrate_legacy(self, app_base_dir: str):
        """Move an unversioned deployment into its own version directory.

        A compose file directly in the base directory always wins resolution,
        so it has to be moved aside before a newer version can take effect.
        """
        legacy_compose = os.path.join(app_base_dir, DEFAULT_COMPOSE_FILENAME)
        if not os.path.isfile(legacy_compose):
            return
        version_dir = self.create_version(app_base_dir)
        try:
            legacy_details = os.path.join(app_base_dir, DETAILS_FILENAME)
            if os.path.isfile(legacy_details):
                os.replace(legacy_details, os.path.join(version_dir, DETAILS_FILENAME))
            os.replace(legacy_compose, os.path.join(version_dir, DEFAULT_COMPOSE_FILENAME))
        except OSError as exc:
            raise FileSystemError(f"Failed to version legacy deployment in {app_base_dir}: {exc}") from exc
        logger.info("Moved legacy deployment in %s to %s", app_base_dir, version_dir)

    def read_compose(self, name: str) -> str:
        deployment = self.get(name)
        try:
            with open(deployment.compose_file, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as exc:
            raise FileSystemError(f"Failed to read {deployment.compose_file}: {exc}") from exc

    def update_compose(self, name: str, content: str) -> Deployment:
        """Store edited compose content as a new version of the app."""
        current = self.get(name)
        return self.install(current.details, content, name=name)

    def delete(self, name: str) -> None:
        app_base_dir = self.app_dir(name)
        if not os.path.exists(app_base_dir):
            return
        try:
            shutil.rmtree(app_base_dir)
        except OSError as exc:
            raise FileSystemError(f"Failed to delete application files: {exc}") from exc
        logger.info("Deleted %s", app_base_dir)


def _versions_in(app_base_dir: str) -> List[str]:
    if not os.path.isdir(app_base_dir):
        return []
    versions = [
        entry.name
        for entry in os.scandir(app_base_dir)
        if entry.is_dir()
        and os.path.isfile(os.path.join(entry.path, DEFAULT_COMPOSE_FILENAME))
    ]
    return sorted(versions, reverse=True)


def _read_details(directory: str) -> Dict[str, Any]:
    path = os.path.join(directory, DETAILS_FILENAME)
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _write_text(path: str, content: str):
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(content)
    os.replace(tmp_path, path)
