from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from dockyard.appstore.models import AppSettings, Application, Source, SourceVariant
from dockyard.deployments.models import (
    CommandResult,
    ContainerState,
    Deployment,
    InstalledApp,
    LifecycleAction,
)


class BaseResponse(BaseModel):
    status: str = "success"
    message: Optional[str] = None


class SuccessResponse(BaseResponse):
    pass


class VersionInfo(BaseModel):
    version: str


class DeploymentDetail(BaseModel):
    deployment: Deployment
    compose_content: str
    versions: List[str] = Field(default_factory=list)


class VersionResponse(BaseResponse):
    data: VersionInfo


class SourceListResponse(BaseResponse):
    data: List[Source]


class SourceResponse(BaseResponse):
    data: Source


class AppListResponse(BaseResponse):
    data: List[Application]


class AppResponse(BaseResponse):
    data: Application


class TextResponse(BaseResponse):
    data: str


class InstalledAppListResponse(BaseResponse):
    data: List[InstalledApp]


class DeploymentResponse(BaseResponse):
    data: Deployment


class DeploymentDetailResponse(BaseResponse):
    data: DeploymentDetail


class CommandResultResponse(BaseResponse):
    data: CommandResult


class ContainerListResponse(BaseResponse):
    data: List[ContainerState]


class SettingsResponse(BaseResponse):
    data: AppSettings


class SourceCreateRequest(BaseModel):
    url: str
    variant: Optional[SourceVariant] = None
    name: Optional[str] = None
    # Older clients flag template catalogs with a boolean instead of a variant.
    is_yacht: Optional[bool] = None

    @model_validator(mode="after")
    def _resolve_legacy_flag(self):
        if self.variant is None and self.is_yacht:
            self.variant = SourceVariant.DECLARATIVE_TEMPLATE
        return self


class AppInstallRequest(BaseModel):
    name: Optional[str] = None


class ComposeUpdateRequest(BaseModel):
    content: str


class DeploymentActionRequest(BaseModel):
    action: LifecycleAction


class DeploymentDeleteRequest(BaseModel):
    delete_images: bool = False
    delete_volumes: bool = False
