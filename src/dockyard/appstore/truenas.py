import logging
import re
from typing import Any, Dict, Optional

import yaml

from dockyard.appstore.compose import ComposeParseError, dump_compose_yaml, parse_compose_yaml

logger = logging.getLogger(__name__)

DEFAULT_PORT = 10000
DEFAULT_TARGET_PORT = 80


def generate_truenas_values(compose_content: str) -> str:
    """Render TrueNAS chart values for the first service of a compose file.

    TrueNAS apps centre on a single main workload, so only the first service
    is translated. Failures produce a YAML comment instead of an exception so
    the result can always be shown to the operator.
    """
    try:
        compose = parse_compose_yaml(compose_content)
        services = compose.get("services") or {}
        if not services:
            return "# No services found"

        service = next(iter(services.values())) or {}
        if not isinstance(service, dict):
            return "# No services found"

        values = _base_values(service.get("image") or "")
        _apply_ports(values, service.get("ports"))
        _apply_environment(values, service.get("environment"))
        _apply_volumes(values, service.get("volumes"))
        return dump_compose_yaml(values)
    except (ComposeParseError, yaml.YAMLError, ValueError, TypeError) as exc:
        logger.error("TrueNAS generation error: %s", exc)
        return "# Error generating TrueNAS template"


def _base_values(image: str) -> Dict[str, Any]:
    repository, sep, tag = str(image).rpartition(":")
    # A colon before the last slash belongs to a registry host:port.
    if not sep or "/" in tag:
        repository, tag = str(image), ""
    return {
        "image": {
            "repository": repository or "image",
            "tag": tag or "latest",
            "pullPolicy": "IfNotPresent",
        },
        "service": {
            "main": {
                "ports": {
                    "main": {
                        "port": DEFAULT_PORT,
                        "targetPort": DEFAULT_TARGET_PORT,
                        "protocol": "TCP",
                    }
                }
            }
        },
        "workload": {"main": {"podSpec": {"containers": {"main": {"env": {}}}}}},
        "persistence": {},
    }


def _apply_ports(values: Dict[str, Any], ports: Any):
    if not isinstance(ports, list) or not ports or not isinstance(ports[0], str):
        return
    parts = ports[0].split("/", 1)[0].split(":")
    if len(parts) < 2:
        return
    # Ranges such as "8080-8090:80" map their first port.
    port, target_port = _leading_int(parts[-2]), _leading_int(parts[-1])
    if port is None or target_port is None:
        return
    main = values["service"]["main"]["ports"]["main"]
    main["port"] = port
    main["targetPort"] = target_port


def _leading_int(value: str) -> Optional[int]:
    match = re.match(r"\d+", value.strip())
    return int(match.group()) if match else None


def _apply_environment(values: Dict[str, Any], environment: Any):
    env = values["workload"]["main"]["podSpec"]["containers"]["main"]["env"]
    if isinstance(environment, dict):
        env.update({str(k): "" if v is None else v for k, v in environment.items()})
    elif isinstance(environment, list):
        for item in environment:
            key, _, value = str(item).partition("=")
            env[key] = value


def _apply_volumes(values: Dict[str, Any], volumes: Any):
    if not isinstance(volumes, list):
        return
    for index, volume in enumerate(volumes):
        if not isinstance(volume, str):
            continue
        parts = volume.split(":")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            continue
        host, container = parts[0], parts[1]
        is_named = not host.startswith(("/", ".", "~"))
        entry: Dict[str, Any] = {"enabled": True, "mountPath": container}
        if is_named:
            entry.update({"type": "ixVolume", "datasetName": host})
        else:
            entry.update({"type": "hostPath", "hostPath": host})
        values["persistence"][f"vol{index}"] = entry
