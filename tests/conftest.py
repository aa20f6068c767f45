import os
import sys

import pytest
import yaml
from docker.errors import APIError

# Ensure project root is importable (so `import cli`, `import main` work without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from cdh.docker_ops import ContainerRef  # noqa: E402
from cdh.docker_ops import ComposeError  # noqa: E402
from cdh.tagging import normalize_repository, split_image_reference  # noqa: E402


class FakeRuntime:
    """In-memory stand-in for DockerRuntime.

    ``containers`` maps id -> (ContainerRef, published host port or None).
    ``compose_up`` starts one container per service in the override file.
    """

    def __init__(self):
        self.calls = []
        self.containers = {}
        self.fail_push = set()
        self.fail_remove = set()
        self.fail_pull = False
        self.fail_up = False
        self.fail_build = False
        self.service_port = 8080
        self._seq = 0

    def add_container(self, name, image, port=None):
        self._seq += 1
        cid = f"c{self._seq}"
        self.containers[cid] = (ContainerRef(id=cid, name=name, image=image, status="running"), port)
        return cid

    def running(self):
        return [ref for ref, _ in self.containers.values()]

    # registry
    def compose_build(self, files, cwd=None):
        self.calls.append(("build", list(files)))
        if self.fail_build:
            raise ComposeError(["docker", "compose", "build"], 1, "build failed")

    def login(self, username, token, registry=None):
        self.calls.append(("login", username))

    def push_image(self, ref):
        self.calls.append(("push", ref))
        if ref in self.fail_push:
            raise APIError(f"denied: {ref}")

    def pull_image(self, ref):
        self.calls.append(("pull", ref))
        if self.fail_pull:
            raise APIError(f"manifest for {ref} not found")

    # containers
    def containers_on_port(self, port):
        return [ref for ref, p in self.containers.values() if p == port]

    def containers_by_ancestor(self, repo):
        want = normalize_repository(repo)
        return [ref for ref, _ in self.containers.values() if normalize_repository(split_image_reference(ref.image)[0]) == want]

    def remove_container(self, container_id):
        self.calls.append(("remove", container_id))
        if container_id in self.fail_remove:
            raise APIError(f"cannot stop {container_id}")
        self.containers.pop(container_id, None)

    def compose_up(self, files, cwd=None):
        self.calls.append(("up", list(files)))
        if self.fail_up:
            raise ComposeError(["docker", "compose", "up"], 1, "port is already allocated")
        with open(files[-1], encoding="utf-8") as f:
            override = yaml.safe_load(f)
        for name, svc in override["services"].items():
            self.add_container(f"server-{name}-1", svc["image"], self.service_port)

    def compose_logs(self, files, cwd=None, tail=200):
        self.calls.append(("logs", tail))
        return "app  | listening on 8000"

    def container_table(self):
        self.calls.append(("table",))
        return "NAMES   IMAGE   STATUS"

    def prune_dangling_images(self):
        self.calls.append(("prune",))
        return 0


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def write_compose(tmp_path):
    def _write(services, name="docker-compose.yml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump({"services": services}, sort_keys=False), encoding="utf-8")
        return path

    return _write
