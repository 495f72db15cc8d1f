"""Process-wide service instances handed to routers through ``Depends``.

Tests replace them with ``app.dependency_overrides``.
"""

import os
from functools import lru_cache

from dockyard.appstore.catalog_service import CatalogService
from dockyard.appstore.settings_store import SettingsStore
from dockyard.appstore.source_registry import SourceRegistry
from dockyard.config import config
from dockyard.deployments.controller import DeploymentController
from dockyard.deployments.install_service import AppInstallService
from dockyard.deployments.locks import AppLocks
from dockyard.deployments.status import ContainerStatusReader
from dockyard.deployments.store import DeploymentStore

SOURCES_FILENAME = "sources.json"
SETTINGS_FILENAME = "settings.json"


@lru_cache()
def get_registry() -> SourceRegistry:
    return SourceRegistry(os.path.join(config.data_directory, SOURCES_FILENAME))


@lru_cache()
def get_settings_store() -> SettingsStore:
    return SettingsStore(os.path.join(config.data_directory, SETTINGS_FILENAME))


@lru_cache()
def get_catalog() -> CatalogService:
    return CatalogService(get_registry(), get_settings_store(), config.storage_directory)


@lru_cache()
def get_store() -> DeploymentStore:
    return DeploymentStore(config.deploy_directory)


@lru_cache()
def get_locks() -> AppLocks:
    return AppLocks()


@lru_cache()
def get_controller() -> DeploymentController:
    return DeploymentController(get_store(), locks=get_locks())


@lru_cache()
def get_installer() -> AppInstallService:
    return AppInstallService(get_catalog(), get_store(), locks=get_locks())


@lru_cache()
def get_status_reader() -> ContainerStatusReader:
    return ContainerStatusReader()
