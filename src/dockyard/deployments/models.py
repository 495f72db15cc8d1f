from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class LifecycleAction(str, Enum):
    UP = "up"
    DOWN = "down"
    RESTART = "restart"
    STOP = "stop"
    START = "start"


class Deployment(BaseModel):
    name: str
    timestamp: Optional[str] = None
    directory: str
    compose_file: str
    details: Dict[str, Any] = Field(default_factory=dict)


class InstalledApp(BaseModel):
    name: str
    path: str
    valid: bool
    versions: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)


class CommandResult(BaseModel):
    command: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""


class ContainerState(BaseModel):
    id: str
    name: str
    service: Optional[str] = None
    image: Optional[str] = None
    status: str
