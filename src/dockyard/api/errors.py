import traceback

from fastapi import HTTPException
from fastapi.logger import logger

from dockyard.errors import (
    CatalogParseError,
    CommandFailed,
    ConfigurationError,
    DeploymentNotFound,
    DockyardError,
    DuplicateSource,
    InstallDisabled,
    InvalidAction,
    NetworkError,
    NoAppsFolderFound,
    SizeLimitExceeded,
    SourceNotFound,
    SourceValidationError,
    UnsafeUrl,
)

# Checked in order; subclasses come before their bases.
STATUS_CODES = (
    (DuplicateSource, 409),
    (SourceValidationError, 400),
    (UnsafeUrl, 400),
    (InvalidAction, 400),
    (SourceNotFound, 404),
    (DeploymentNotFound, 404),
    (InstallDisabled, 403),
    (SizeLimitExceeded, 413),
    (CatalogParseError, 422),
    (NoAppsFolderFound, 422),
    (NetworkError, 502),
    (CommandFailed, 502),
    (ConfigurationError, 500),
)


def status_code_for(exc: DockyardError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def to_http_exception(exc: DockyardError) -> HTTPException:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s: %s\n%s", type(exc).__name__, exc, traceback.format_exc())
    return HTTPException(status_code=status_code, detail=str(exc))
