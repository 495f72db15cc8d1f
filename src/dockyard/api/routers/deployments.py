from fastapi import APIRouter, Depends

from dockyard.api.dependencies import (
    get_controller,
    get_installer,
    get_status_reader,
    get_store,
)
from dockyard.api.dtos import (
    CommandResultResponse,
    ComposeUpdateRequest,
    ContainerListResponse,
    DeploymentActionRequest,
    DeploymentDeleteRequest,
    DeploymentDetail,
    DeploymentDetailResponse,
    DeploymentResponse,
    InstalledAppListResponse,
    SuccessResponse,
)
from dockyard.api.errors import to_http_exception
from dockyard.deployments.controller import DeploymentController
from dockyard.deployments.install_service import AppInstallService
from dockyard.deployments.status import ContainerStatusReader
from dockyard.deployments.store import DeploymentStore
from dockyard.errors import DockyardError

router = APIRouter(prefix="/deployments", tags=["Deployments"])


@router.get("", response_model=InstalledAppListResponse)
def list_deployments(store: DeploymentStore = Depends(get_store)):
    return InstalledAppListResponse(data=store.list_deployments())


@router.get("/{name}", response_model=DeploymentDetailResponse)
def get_deployment(name: str, store: DeploymentStore = Depends(get_store)):
    try:
        detail = DeploymentDetail(
            deployment=store.get(name),
            compose_content=store.read_compose(name),
            versions=store.list_versions(name),
        )
    except DockyardError as exc:
        raise to_http_exception(exc)
    return DeploymentDetailResponse(data=detail)


@router.put("/{name}", response_model=DeploymentResponse)
async def update_deployment(
    name: str,
    payload: ComposeUpdateRequest,
    installer: AppInstallService = Depends(get_installer),
):
    try:
        deployment = await installer.update_compose(name, payload.content)
    except DockyardError as exc:
        raise to_http_exception(exc)
    return DeploymentResponse(message=f"Saved version {deployment.timestamp}", data=deployment)


@router.post("/{name}/action", response_model=CommandResultResponse)
async def run_action(
    name: str,
    payload: DeploymentActionRequest,
    controller: DeploymentController = Depends(get_controller),
):
    try:
        result = await controller.apply(name, payload.action)
    except DockyardError as exc:
        raise to_http_exception(exc)
    return CommandResultResponse(message=f"{payload.action.value} completed for {name}", data=result)


@router.post("/{name}/delete", response_model=SuccessResponse)
async def delete_deployment(
    name: str,
    payload: DeploymentDeleteRequest,
    controller: DeploymentController = Depends(get_controller),
):
    try:
        await controller.remove(
            name,
            delete_images=payload.delete_images,
            delete_volumes=payload.delete_volumes,
        )
    except DockyardError as exc:
        raise to_http_exception(exc)
    return SuccessResponse(message=f"App {name} deleted")


@router.get("/{name}/containers", response_model=ContainerListResponse)
def list_containers(name: str, reader: ContainerStatusReader = Depends(get_status_reader)):
    return ContainerListResponse(data=reader.project_containers(name))
