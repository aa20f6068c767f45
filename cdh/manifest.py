from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

import yaml

from .errors import ManifestError
from .events import log_event

TRANSIENT_OVERRIDE_NAME = ".docker-compose.image.override.yml"
OVERRIDE_NAME = "docker-compose.override.yml"


def load_manifest(compose_file: str) -> dict[str, Any]:
    if not os.path.isfile(compose_file):
        raise ManifestError(f"Build manifest {compose_file} not found.")
    try:
        with open(compose_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestError(f"Build manifest {compose_file} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"Build manifest {compose_file} must be a mapping.")
    return data


def _services_section(data: Mapping[str, Any], compose_file: str) -> dict[str, Any]:
    services = data.get("services")
    if services is None:
        return {}
    if not isinstance(services, dict):
        raise ManifestError(f"'services' in {compose_file} must be a mapping.")
    return services


def list_services(compose_file: str) -> list[str]:
    """Service names declared in the build manifest, in declaration order."""
    names = [str(n) for n in _services_section(load_manifest(compose_file), compose_file)]
    if not names:
        raise ManifestError(f"No services found in {compose_file}.")
    return names


def _published_port(entry: Any) -> int | None:
    # Long syntax: {target: 8000, published: 8080}
    if isinstance(entry, dict):
        published = entry.get("published")
        try:
            return int(published) if published is not None else None
        except (TypeError, ValueError):
            return None
    # Short syntax: "8080:8000", "127.0.0.1:8080:8000/tcp", "8000"
    parts = str(entry).split("/")[0].split(":")
    if len(parts) < 2:
        return None
    try:
        return int(parts[-2])
    except ValueError:
        # port ranges are not supported for supersession
        return None


def service_ports(compose_file: str, service: str) -> list[int]:
    """Host ports a service publishes according to the manifest."""
    services = _services_section(load_manifest(compose_file), compose_file)
    svc = services.get(service)
    if not isinstance(svc, dict):
        return []
    out: list[int] = []
    for entry in svc.get("ports") or []:
        port = _published_port(entry)
        if port is not None and port not in out:
            out.append(port)
    return out


def write_override(path: str, images: Mapping[str, str], restart: str | None = None) -> None:
    """Write a compose override pinning each service to an image.

    The file is replaced as a whole; nothing from a previous override survives.
    """
    services: dict[str, dict[str, str]] = {}
    for name, image in images.items():
        entry = {"image": image}
        if restart:
            entry["restart"] = restart
        services[name] = entry
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump({"services": services}, f, default_flow_style=False, sort_keys=False)


@contextmanager
def transient_override(path: str, images: Mapping[str, str]) -> Iterator[str]:
    """Write a tagging override for the duration of a build, then remove it."""
    log_event("INFO", f"Creating override file: {path}")
    write_override(path, images)
    try:
        yield path
    finally:
        log_event("INFO", f"Cleaning up temporary override file {path}")
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
