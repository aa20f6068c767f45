from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Protocol, Sequence

from docker.errors import DockerException

from .docker_ops import ComposeError, ContainerRef
from .errors import ConfigError, HealthCheckFailed, ManifestError, PullError, StartError
from .events import log_event
from .health import HealthResult, wait_until_healthy
from .manifest import OVERRIDE_NAME, service_ports, write_override
from .settings import RolloutConfig
from .supersede import SupersessionReport, supersede
from .tagging import split_image_reference

RESTART_POLICY = "unless-stopped"
LOG_TAIL = 200


class HostRuntime(Protocol):
    def pull_image(self, ref: str) -> None: ...

    def containers_on_port(self, port: int) -> list[ContainerRef]: ...

    def containers_by_ancestor(self, repo: str) -> list[ContainerRef]: ...

    def remove_container(self, container_id: str) -> None: ...

    def compose_up(self, files: Sequence[str], cwd: str | None = None) -> None: ...

    def compose_logs(self, files: Sequence[str], cwd: str | None = None, tail: int = 200) -> str: ...

    def container_table(self) -> str: ...

    def prune_dangling_images(self) -> int: ...


Verifier = Callable[[RolloutConfig], HealthResult]


def _verify(config: RolloutConfig) -> HealthResult:
    return wait_until_healthy(config.health_url, retries=config.retries, wait_s=config.wait_s, timeout_s=config.timeout_s)


@dataclass
class RolloutOutcome:
    tag: str | None
    target_dir: str
    image: str
    health: HealthResult
    supersession: SupersessionReport = field(default_factory=SupersessionReport)
    finished_at: str = ""

    @property
    def healthy(self) -> bool:
        return self.health.healthy


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _host_port(config: RolloutConfig, compose_file: str) -> int | None:
    if config.host_port:
        return config.host_port
    try:
        ports = service_ports(compose_file, config.service_name)
    except ManifestError as e:
        log_event("WARNING", f"Could not read published ports: {e}", service_name=config.service_name)
        return None
    return ports[0] if ports else None


def _dump_diagnostics(runtime: HostRuntime, files: Sequence[str], cwd: str) -> None:
    try:
        log_event("ERROR", f"Container status:\n{runtime.container_table()}")
    except DockerException as e:
        log_event("ERROR", f"Could not list containers: {e}")
    try:
        log_event("ERROR", f"Recent logs:\n{runtime.compose_logs(files, cwd=cwd, tail=LOG_TAIL)}")
    except ComposeError as e:
        log_event("ERROR", f"Could not read service logs: {e}")


def rollout(
    config: RolloutConfig,
    runtime: HostRuntime,
    verify: Verifier = _verify,
    now: Callable[[], str] = _utc_now,
) -> RolloutOutcome:
    """Move ``config.service_name`` onto ``config.image`` and gate on health.

    Steps: pull, pin (override manifest), supersede prior containers, start,
    verify. A failed health gate dumps diagnostics and raises; the host is
    left on the new image.
    """
    service = config.service_name
    repo, tag = split_image_reference(config.image)
    app_dir = os.path.abspath(os.path.expanduser(config.app_dir))
    compose_file = os.path.join(app_dir, config.compose_file)
    override = os.path.join(app_dir, OVERRIDE_NAME)
    files = [compose_file, override]

    if not os.path.isdir(app_dir):
        raise ConfigError(f"Target directory {app_dir} does not exist.")

    log_event("INFO", f"Starting deployment of {config.image} in {app_dir}", service_name=service, version=tag)

    log_event("INFO", "Pulling image...", service_name=service, version=tag)
    try:
        runtime.pull_image(config.image)
    except DockerException as e:
        raise PullError(f"Could not pull {config.image}: {e}") from e

    log_event("INFO", f"Pinning image in {override}", service_name=service, version=tag)
    try:
        write_override(override, {service: config.image}, restart=RESTART_POLICY)
    except OSError as e:
        raise ConfigError(f"Could not write {override}: {e}") from e

    port = _host_port(config, compose_file)
    report = supersede(runtime, port, config.repo or repo)
    log_event(
        "INFO",
        f"Superseded {len(report.removed)} container(s), {len(report.failed)} failure(s)",
        service_name=service,
        version=tag,
    )

    log_event("INFO", "Deploying containers...", service_name=service, version=tag)
    try:
        runtime.compose_up(files, cwd=app_dir)
    except ComposeError as e:
        raise StartError(f"docker compose up failed: {e}") from e

    log_event("INFO", f"Running health checks against {config.health_url}", service_name=service, version=tag)
    try:
        health = verify(config)
    except HealthCheckFailed:
        log_event("ERROR", f"Health check failed after {config.retries} attempts", service_name=service, version=tag)
        _dump_diagnostics(runtime, files, app_dir)
        raise

    if config.prune_images:
        try:
            reclaimed = runtime.prune_dangling_images()
            log_event("INFO", f"Pruned dangling images ({reclaimed} bytes reclaimed)")
        except DockerException as e:
            log_event("WARNING", f"Image prune failed: {e}")

    outcome = RolloutOutcome(
        tag=tag,
        target_dir=app_dir,
        image=config.image,
        health=health,
        supersession=report,
        finished_at=now(),
    )
    log_event("INFO", f"Deployment completed successfully at {outcome.finished_at}", service_name=service, version=tag)
    return outcome
