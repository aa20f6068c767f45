from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Any, Sequence

import docker
from docker.errors import APIError, DockerException, NotFound

from .events import log_event
from .tagging import normalize_repository, split_image_reference


@dataclass(frozen=True)
class ContainerRef:
    id: str
    name: str
    image: str = ""
    status: str = ""


class ComposeError(Exception):
    def __init__(self, args: Sequence[str], returncode: int, output: str) -> None:
        super().__init__(f"`{' '.join(args)}` exited with {returncode}: {output.strip()[-500:]}")
        self.returncode = returncode
        self.output = output


def _client() -> docker.DockerClient:
    return docker.from_env()


def _image_of(container: Any) -> str:
    """Image reference the container was started from."""
    cfg = (getattr(container, "attrs", None) or {}).get("Config") or {}
    if cfg.get("Image"):
        return str(cfg["Image"])
    try:
        tags = container.image.tags
    except (DockerException, AttributeError):
        return ""
    return tags[0] if tags else ""


def _host_ports(container: Any) -> set[int]:
    """Host ports the container publishes, from NetworkSettings or HostConfig."""
    attrs = getattr(container, "attrs", None) or {}
    out: set[int] = set()
    sources = [
        (attrs.get("NetworkSettings") or {}).get("Ports") or {},
        (attrs.get("HostConfig") or {}).get("PortBindings") or {},
    ]
    for bindings in sources:
        for entries in bindings.values():
            for b in entries or []:
                try:
                    out.add(int(b.get("HostPort")))
                except (TypeError, ValueError):
                    continue
    return out


def _ref(container: Any) -> ContainerRef:
    return ContainerRef(id=container.id, name=container.name, image=_image_of(container), status=container.status)


class DockerRuntime:
    """Container runtime operations used by the publisher and the rollout.

    Registry and container calls go through docker-py; compose projects are
    driven through the ``docker compose`` CLI.
    """

    def __init__(self, client: docker.DockerClient | None = None, docker_bin: str = "docker") -> None:
        self._docker = client
        self.docker_bin = docker_bin

    @property
    def client(self) -> docker.DockerClient:
        if self._docker is None:
            self._docker = _client()
        return self._docker

    # --- registry ---

    def login(self, username: str, token: str, registry: str | None = None) -> None:
        self.client.login(username=username, password=token, registry=registry)

    def push_image(self, ref: str) -> None:
        repo, tag = split_image_reference(ref)
        for chunk in self.client.images.push(repo, tag=tag, stream=True, decode=True):
            if isinstance(chunk, dict) and chunk.get("error"):
                raise APIError(str(chunk["error"]))

    def pull_image(self, ref: str) -> None:
        repo, tag = split_image_reference(ref)
        self.client.images.pull(repo, tag=tag)

    # --- containers ---

    def containers_on_port(self, port: int) -> list[ContainerRef]:
        # the "publish" filter matches container-side ports, so inspect host bindings
        port = int(port)
        return [_ref(c) for c in self.client.containers.list() if port in _host_ports(c)]

    def containers_by_ancestor(self, repo: str) -> list[ContainerRef]:
        """Running containers whose image belongs to ``repo`` (any tag)."""
        want = normalize_repository(repo)
        out: list[ContainerRef] = []
        for c in self.client.containers.list():
            ref = _ref(c)
            if normalize_repository(split_image_reference(ref.image)[0]) == want:
                out.append(ref)
        return out

    def remove_container(self, container_id: str) -> None:
        try:
            cont = self.client.containers.get(container_id)
        except NotFound:
            return
        try:
            cont.stop(timeout=10)
        except NotFound:
            return
        cont.remove(force=True)

    def container_table(self) -> str:
        rows = [("NAMES", "IMAGE", "STATUS")]
        for c in self.client.containers.list(all=True):
            ref = _ref(c)
            rows.append((ref.name, ref.image, ref.status))
        widths = [max(len(r[i]) for r in rows) for i in range(3)]
        return "\n".join("   ".join(col.ljust(widths[i]) for i, col in enumerate(r)).rstrip() for r in rows)

    def prune_dangling_images(self) -> int:
        res = self.client.images.prune(filters={"dangling": True}) or {}
        return int(res.get("SpaceReclaimed") or 0)

    # --- compose ---

    def compose(self, args: Sequence[str], files: Sequence[str], cwd: str | None = None) -> str:
        cmd = [self.docker_bin, "compose"]
        for f in files:
            cmd += ["-f", f]
        cmd += list(args)
        log_event("DEBUG", f"Running: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise ComposeError(cmd, 127, str(e)) from e
        if proc.returncode != 0:
            raise ComposeError(cmd, proc.returncode, (proc.stderr or "") + (proc.stdout or ""))
        return proc.stdout

    def compose_build(self, files: Sequence[str], cwd: str | None = None) -> None:
        self.compose(["build", "--pull", "--no-cache"], files, cwd)

    def compose_up(self, files: Sequence[str], cwd: str | None = None) -> None:
        self.compose(["up", "-d", "--remove-orphans"], files, cwd)

    def compose_logs(self, files: Sequence[str], cwd: str | None = None, tail: int = 200) -> str:
        return self.compose(["logs", "--no-color", f"--tail={int(tail)}"], files, cwd)
