from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from docker.errors import DockerException

from .docker_ops import ContainerRef
from .events import log_event


class ContainerRuntime(Protocol):
    def containers_on_port(self, port: int) -> list[ContainerRef]: ...

    def containers_by_ancestor(self, repo: str) -> list[ContainerRef]: ...

    def remove_container(self, container_id: str) -> None: ...


@dataclass(frozen=True)
class RemovalFailure:
    container: ContainerRef
    reason: str  # port|ancestor
    error: str


@dataclass
class SupersessionReport:
    removed: list[ContainerRef] = field(default_factory=list)
    failed: list[RemovalFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def _remove_all(runtime: ContainerRuntime, found: list[ContainerRef], reason: str, report: SupersessionReport, seen: set[str]) -> None:
    for ref in found:
        if ref.id in seen:
            continue
        seen.add(ref.id)
        try:
            runtime.remove_container(ref.id)
        except DockerException as e:
            report.failed.append(RemovalFailure(container=ref, reason=reason, error=str(e)))
            log_event("WARNING", f"Could not remove container {ref.name} ({reason} match): {e}")
            continue
        report.removed.append(ref)
        log_event("INFO", f"Removed container {ref.name} ({ref.image}) bound by {reason} match")


def supersede(runtime: ContainerRuntime, host_port: int | None, repo: str | None) -> SupersessionReport:
    """Stop and remove containers a new rollout would collide with.

    Pass 1 removes anything publishing ``host_port``; pass 2 removes running
    containers started from any tag of ``repo``. Removal is best-effort:
    failures land in the report and never raise.
    """
    report = SupersessionReport()
    seen: set[str] = set()

    if host_port:
        try:
            found = runtime.containers_on_port(host_port)
        except DockerException as e:
            log_event("WARNING", f"Could not list containers on port {host_port}: {e}")
            found = []
        _remove_all(runtime, found, "port", report, seen)

    if repo:
        try:
            found = runtime.containers_by_ancestor(repo)
        except DockerException as e:
            log_event("WARNING", f"Could not list containers from {repo}: {e}")
            found = []
        _remove_all(runtime, found, "ancestor", report, seen)

    return report
