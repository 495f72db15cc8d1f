from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class SourceKind(str, Enum):
    ARCHIVE = "archive"
    DECLARATIVE_JSON = "declarative-json"


class SourceVariant(str, Enum):
    METADATA_ANNOTATED = "metadata-annotated"
    DECLARATIVE_TEMPLATE = "declarative-template"


class SourceStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


VARIANT_KINDS = {
    SourceVariant.METADATA_ANNOTATED: SourceKind.ARCHIVE,
    SourceVariant.DECLARATIVE_TEMPLATE: SourceKind.DECLARATIVE_JSON,
}


class Source(BaseModel):
    id: str
    url: str
    kind: SourceKind
    variant: Optional[SourceVariant] = None
    name: Optional[str] = None
    status: SourceStatus = SourceStatus.PENDING
    error: Optional[str] = None
    updated_at: Optional[str] = None

    @model_validator(mode="after")
    def _check_variant_kind(self):
        if self.variant is not None and VARIANT_KINDS[self.variant] != self.kind:
            raise ValueError(
                f"Variant '{self.variant.value}' requires a '{VARIANT_KINDS[self.variant].value}' source"
            )
        return self


class Application(BaseModel):
    id: str
    source_id: str
    name: str
    description: Optional[str] = None
    icon_url: Optional[str] = None
    screenshots: List[str] = Field(default_factory=list)
    compose_path: Optional[str] = None
    compose_content: Optional[str] = None

    @model_validator(mode="after")
    def _check_compose_reference(self):
        if bool(self.compose_path) == bool(self.compose_content):
            raise ValueError(
                "Exactly one of compose_path or compose_content must be set"
            )
        return self


class AppSettings(BaseModel):
    tokens: Dict[str, str] = Field(default_factory=dict)
    disable_save_to_server: bool = False
