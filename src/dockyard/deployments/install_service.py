import asyncio
import logging
from typing import Optional

from dockyard.appstore.catalog_service import CatalogService
from dockyard.appstore.models import Application
from dockyard.deployments.locks import AppLocks
from dockyard.deployments.models import Deployment
from dockyard.deployments.store import DeploymentStore
from dockyard.errors import InstallDisabled

logger = logging.getLogger(__name__)


class AppInstallService:
    """Turns catalog applications into stored deployment versions.

    Catalog reads may hit the network and store writes touch the disk, so both
    run in worker threads; only the store write happens under the app lock.
    """

    def __init__(self, catalog: CatalogService, store: DeploymentStore, locks: Optional[AppLocks] = None):
        self.catalog = catalog
        self.store = store
        self.locks = locks or AppLocks()

    async def install(self, app: Application, name: Optional[str] = None) -> Deployment:
        settings = await asyncio.to_thread(self.catalog.settings.get)
        if settings.disable_save_to_server:
            raise InstallDisabled("Saving deployments to the server is disabled")

        app_name = name or app.name
        compose_content = await asyncio.to_thread(self.catalog.read_compose, app)
        async with self.locks.hold(app_name):
            deployment = await asyncio.to_thread(
                self.store.install, app.model_dump(mode="json"), compose_content, name=app_name
            )
        logger.info("Installed %s from %s as %s", app.id, app.source_id, deployment.directory)
        return deployment

    async def update_compose(self, name: str, content: str) -> Deployment:
        async with self.locks.hold(name):
            deployment = await asyncio.to_thread(self.store.update_compose, name, content)
        logger.info("Stored new compose version for %s at %s", name, deployment.directory)
        return deployment
