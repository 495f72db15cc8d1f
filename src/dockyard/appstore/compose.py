from typing import Any, Dict, List, Optional

import yaml

COMPOSE_FILENAMES = ("docker-compose.yml", "docker-compose.yaml")
DEFAULT_COMPOSE_FILENAME = COMPOSE_FILENAMES[0]

# Reserved top-level extension key carrying store metadata (CasaOS format).
METADATA_KEY = "x-casaos"
PREFERRED_LOCALE = "en_us"


class ComposeParseError(ValueError):
    pass


def parse_compose_yaml(content: str) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise ComposeParseError(f"Invalid compose YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ComposeParseError("Compose file must be a YAML object")
    services = data.get("services")
    if services is not None and not isinstance(services, dict):
        raise ComposeParseError("Compose 'services' must be a YAML object")
    return data


def dump_compose_yaml(data: Dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


def find_compose_file(directory_entries: List[str]) -> Optional[str]:
    for name in COMPOSE_FILENAMES:
        if name in directory_entries:
            return name
    return None


def pick_localized(value: Any, locale: str = PREFERRED_LOCALE) -> Optional[str]:
    """Collapse a language-keyed map to a single string.

    ``{"en_us": "Foo", "fr_fr": "Fou"}`` yields ``"Foo"``; maps without the
    preferred locale yield their first value; plain strings pass through.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        if not value:
            return None
        if locale in value:
            return _as_text(value[locale])
        return _as_text(next(iter(value.values())))
    return _as_text(value)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def strip_extension_key(compose_data: Dict[str, Any], key: str = METADATA_KEY) -> Dict[str, Any]:
    """Return a copy without ``key`` at the top level or on any service."""
    cleaned = {k: v for k, v in compose_data.items() if k != key}
    services = cleaned.get("services")
    if isinstance(services, dict):
        cleaned["services"] = {
            name: (
                {k: v for k, v in service.items() if k != key}
                if isinstance(service, dict)
                else service
            )
            for name, service in services.items()
        }
    return cleaned


def normalize_bind_volumes(compose_data: Dict[str, Any]) -> Dict[str, Any]:
    """Rewrite long-form bind mounts as compact ``source:target`` strings."""
    services = compose_data.get("services")
    if not isinstance(services, dict):
        return compose_data

    for service in services.values():
        if not isinstance(service, dict):
            continue
        volumes = service.get("volumes")
        if not isinstance(volumes, list):
            continue
        service["volumes"] = [_compact_volume(item) for item in volumes]
    return compose_data


def _compact_volume(item: Any) -> Any:
    if not isinstance(item, dict) or item.get("type") != "bind":
        return item
    source = item.get("source")
    target = item.get("target")
    if not source or not target:
        return item
    entry = f"{source}:{target}"
    if item.get("read_only"):
        entry += ":ro"
    return entry


def normalize_port_entry(item: Any) -> Optional[str]:
    """Coerce a template port entry to a mapping string, or ``None``."""
    if isinstance(item, bool):
        return None
    if isinstance(item, (str, int)):
        return str(item)
    if isinstance(item, dict) and len(item) == 1:
        value = next(iter(item.values()))
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return str(value)
    return None
