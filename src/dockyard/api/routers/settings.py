from fastapi import APIRouter, Depends

from dockyard.api.dependencies import get_settings_store
from dockyard.api.dtos import SettingsResponse
from dockyard.api.errors import to_http_exception
from dockyard.appstore.models import AppSettings
from dockyard.appstore.settings_store import SettingsStore
from dockyard.errors import DockyardError

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=SettingsResponse)
def get_settings(store: SettingsStore = Depends(get_settings_store)):
    return SettingsResponse(data=store.get())


@router.post("", response_model=SettingsResponse)
def save_settings(payload: AppSettings, store: SettingsStore = Depends(get_settings_store)):
    try:
        saved = store.save(payload)
    except DockyardError as exc:
        raise to_http_exception(exc)
    return SettingsResponse(message="Settings saved", data=saved)
