from fastapi import APIRouter, Depends
from fastapi.logger import logger

from dockyard.api.dependencies import get_catalog, get_registry
from dockyard.api.dtos import SourceCreateRequest, SourceListResponse, SourceResponse
from dockyard.api.errors import to_http_exception
from dockyard.appstore.catalog_service import CatalogService
from dockyard.appstore.models import SourceStatus
from dockyard.appstore.source_registry import SourceRegistry
from dockyard.errors import DockyardError

router = APIRouter(prefix="/sources", tags=["Sources"])


@router.get("", response_model=SourceListResponse)
def list_sources(registry: SourceRegistry = Depends(get_registry)):
    return SourceListResponse(data=registry.list_sources())


@router.post("", response_model=SourceResponse, status_code=201)
def add_source(payload: SourceCreateRequest, catalog: CatalogService = Depends(get_catalog)):
    """Register a source and process it.

    A source that fails processing stays registered; the response then
    reports ``status=error`` with the processing message.
    """
    try:
        source = catalog.add_source(payload.url, variant=payload.variant, name=payload.name)
    except DockyardError as exc:
        raise to_http_exception(exc)

    if source.status == SourceStatus.ERROR:
        logger.error("Source %s registered but failed to process: %s", source.id, source.error)
        return SourceResponse(status="error", message=source.error, data=source)
    return SourceResponse(message=f"Source {source.id} added", data=source)


@router.delete("/{source_id}", response_model=SourceResponse)
def remove_source(source_id: str, catalog: CatalogService = Depends(get_catalog)):
    try:
        source = catalog.remove_source(source_id)
    except DockyardError as exc:
        raise to_http_exception(exc)
    return SourceResponse(message=f"Source {source_id} removed", data=source)


@router.post("/{source_id}/refresh", response_model=SourceResponse)
def refresh_source(source_id: str, catalog: CatalogService = Depends(get_catalog)):
    try:
        source = catalog.refresh_source(source_id)
    except DockyardError as exc:
        raise to_http_exception(exc)
    return SourceResponse(message=f"Source {source_id} refreshed", data=source)
