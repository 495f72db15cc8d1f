import logging
from typing import List, Optional

import docker
from docker import errors

from dockyard.deployments.controller import project_name
from dockyard.deployments.models import ContainerState

logger = logging.getLogger(__name__)

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"


class ContainerStatusReader:
    """Reads live container state for a compose project from the Docker API."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    def project_containers(self, name: str) -> List[ContainerState]:
        project = project_name(name)
        try:
            containers = self.client.containers.list(
                all=True, filters={"label": f"{PROJECT_LABEL}={project}"}
            )
        except errors.DockerException as exc:
            logger.warning("Could not query containers for project %s: %s", project, exc)
            return []

        states = []
        for container in containers:
            labels = container.labels or {}
            states.append(
                ContainerState(
                    id=container.short_id,
                    name=container.name,
                    service=labels.get(SERVICE_LABEL),
                    image=_image_name(container),
                    status=container.status,
                )
            )
        return states


def _image_name(container) -> Optional[str]:
    try:
        tags = container.image.tags
    except errors.DockerException:
        return None
    return tags[0] if tags else None
