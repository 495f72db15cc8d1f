import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from dockyard.api.dependencies import get_catalog, get_installer
from dockyard.api.dtos import (
    AppInstallRequest,
    AppListResponse,
    AppResponse,
    DeploymentResponse,
    TextResponse,
)
from dockyard.api.errors import to_http_exception
from dockyard.appstore.catalog_service import CatalogService
from dockyard.appstore.models import Application
from dockyard.appstore.truenas import generate_truenas_values
from dockyard.deployments.install_service import AppInstallService
from dockyard.errors import DockyardError

router = APIRouter(prefix="/apps", tags=["Apps"])


def _get_app_or_404(catalog: CatalogService, app_id: str) -> Application:
    app = catalog.get_app(app_id)
    if app is None:
        raise HTTPException(status_code=404, detail=f"App '{app_id}' not found")
    return app


def _read_compose(catalog: CatalogService, app: Application) -> str:
    try:
        return catalog.read_compose(app)
    except DockyardError as exc:
        raise to_http_exception(exc)


@router.get("", response_model=AppListResponse)
def list_apps(
    q: Optional[str] = Query(None, description="Search query"),
    source_id: Optional[str] = Query(None, description="Only apps from this source"),
    catalog: CatalogService = Depends(get_catalog),
):
    return AppListResponse(data=catalog.list_apps(q=q, source_id=source_id))


@router.get("/{app_id}", response_model=AppResponse)
def get_app(app_id: str, catalog: CatalogService = Depends(get_catalog)):
    return AppResponse(data=_get_app_or_404(catalog, app_id))


@router.get("/{app_id}/compose", response_model=TextResponse)
def get_app_compose(app_id: str, catalog: CatalogService = Depends(get_catalog)):
    app = _get_app_or_404(catalog, app_id)
    return TextResponse(data=_read_compose(catalog, app))


@router.get("/{app_id}/truenas", response_model=TextResponse)
def get_app_truenas(app_id: str, catalog: CatalogService = Depends(get_catalog)):
    app = _get_app_or_404(catalog, app_id)
    return TextResponse(data=generate_truenas_values(_read_compose(catalog, app)))


@router.post("/{app_id}/install", response_model=DeploymentResponse, status_code=201)
async def install_app(
    app_id: str,
    payload: Optional[AppInstallRequest] = None,
    catalog: CatalogService = Depends(get_catalog),
    installer: AppInstallService = Depends(get_installer),
):
    app = await asyncio.to_thread(_get_app_or_404, catalog, app_id)
    name = payload.name if payload else None
    try:
        deployment = await installer.install(app, name=name)
    except DockyardError as exc:
        raise to_http_exception(exc)
    return DeploymentResponse(message=f"Installed {deployment.name}", data=deployment)
