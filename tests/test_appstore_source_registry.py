import json

import pytest

from dockyard.appstore.models import AppSettings, SourceKind, SourceStatus, SourceVariant
from dockyard.appstore.settings_store import DEFAULT_TOKENS, SettingsStore
from dockyard.appstore.source_registry import SourceRegistry, derive_kind
from dockyard.errors import DuplicateSource, SourceNotFound, SourceValidationError


def test_derive_kind():
    assert derive_kind("https://example.com/main.zip") == SourceKind.ARCHIVE
    assert derive_kind("https://example.com/main.ZIP?raw=1") == SourceKind.ARCHIVE
    assert derive_kind("https://example.com/templates.json") == SourceKind.DECLARATIVE_JSON


def test_add_and_persist_source(tmp_path):
    path = tmp_path / "sources.json"
    registry = SourceRegistry(str(path))

    source = registry.add_source(
        "https://example.com/store.zip", variant=SourceVariant.METADATA_ANNOTATED, name="Casa"
    )

    assert source.kind == SourceKind.ARCHIVE
    assert source.status == SourceStatus.PENDING
    stored = json.loads(path.read_text())
    assert stored[0]["id"] == source.id
    assert stored[0]["variant"] == "metadata-annotated"

    reloaded = SourceRegistry(str(path))
    assert [s.id for s in reloaded.list_sources()] == [source.id]


def test_add_source_validation(tmp_path):
    registry = SourceRegistry(str(tmp_path / "sources.json"))

    with pytest.raises(SourceValidationError):
        registry.add_source("   ")
    with pytest.raises(SourceValidationError):
        registry.add_source(
            "https://example.com/templates.json", variant=SourceVariant.METADATA_ANNOTATED
        )

    registry.add_source("https://example.com/templates.json")
    with pytest.raises(DuplicateSource):
        registry.add_source("https://example.com/templates.json")
    assert len(registry.list_sources()) == 1


def test_update_and_remove_source(tmp_path):
    registry = SourceRegistry(str(tmp_path / "sources.json"))
    source = registry.add_source("https://example.com/templates.json")

    registry.update_source(source.model_copy(update={"status": SourceStatus.ERROR, "error": "boom"}))
    assert registry.get_source(source.id).error == "boom"

    removed = registry.remove_source(source.id)
    assert removed.id == source.id
    assert registry.list_sources() == []
    with pytest.raises(SourceNotFound):
        registry.remove_source(source.id)
    with pytest.raises(SourceNotFound):
        registry.get_source(source.id)


def test_registry_skips_invalid_records(tmp_path):
    path = tmp_path / "sources.json"
    path.write_text(
        json.dumps(
            [
                {"id": "ok", "url": "https://example.com/a.json", "kind": "declarative-json"},
                {"id": "bad", "url": "https://example.com/b.json", "kind": "ftp"},
            ]
        )
    )
    assert [s.id for s in SourceRegistry(str(path)).list_sources()] == ["ok"]


def test_settings_store_defaults_and_merge(tmp_path):
    path = tmp_path / "settings.json"
    store = SettingsStore(str(path))

    assert store.tokens() == DEFAULT_TOKENS
    assert store.get().disable_save_to_server is False

    store.save(AppSettings(tokens={"!config": "/srv/cfg"}, disable_save_to_server=True))

    reloaded = SettingsStore(str(path))
    assert reloaded.tokens()["!config"] == "/srv/cfg"
    assert reloaded.tokens()["!PUID"] == "1000"
    assert reloaded.get().disable_save_to_server is True


def test_settings_store_returns_copies(tmp_path):
    store = SettingsStore(str(tmp_path / "settings.json"))
    store.tokens()["!config"] = "/mutated"
    assert store.tokens()["!config"] == "./config"
