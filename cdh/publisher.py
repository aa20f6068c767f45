from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from docker.errors import DockerException

from .docker_ops import ComposeError
from .errors import BuildError, PushError
from .events import log_event
from .manifest import TRANSIENT_OVERRIDE_NAME, list_services, transient_override
from .settings import PublishConfig
from .tagging import GitRunner, run_git, image_references, resolve_version_tag

PLACEHOLDER = "__IMAGE_TAG__"

_PLACEHOLDER_EXAMPLE = """env:
  IMAGE_TAG: __IMAGE_TAG__

or

tags: |
  youruser/yourrepo:__IMAGE_TAG__"""


class RegistryRuntime(Protocol):
    def compose_build(self, files: Sequence[str], cwd: str | None = None) -> None: ...

    def login(self, username: str, token: str, registry: str | None = None) -> None: ...

    def push_image(self, ref: str) -> None: ...


@dataclass
class PublishResult:
    tag: str
    images: dict[str, str]
    pushed: list[str] = field(default_factory=list)
    workflow_patched: bool = False


def patch_workflow_file(path: str, tag: str, placeholder: str = PLACEHOLDER) -> int:
    """Replace every ``placeholder`` in ``path`` with ``tag``.

    Returns the number of replacements. A file without the placeholder is not
    rewritten. Raises FileNotFoundError if ``path`` does not exist.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Workflow file {path} not found.")
    with open(path, encoding="utf-8", newline="") as f:
        text = f.read()
    count = text.count(placeholder)
    if count == 0:
        return 0
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text.replace(placeholder, tag))
    return count


def _update_workflow(path: str, tag: str) -> bool:
    try:
        count = patch_workflow_file(path, tag)
    except FileNotFoundError:
        log_event("ERROR", f"Workflow file {path} not found. Skipping workflow update.")
        return False
    if count == 0:
        log_event(
            "WARNING",
            f"No {PLACEHOLDER} placeholder found in {path}. Nothing changed. "
            f"Add the literal token where the tag belongs, for example:\n{_PLACEHOLDER_EXAMPLE}",
        )
        return False
    log_event("INFO", f"Updated workflow file {path}: replaced {count} x {PLACEHOLDER} -> {tag}")
    return True


def publish(config: PublishConfig, runtime: RegistryRuntime, git: GitRunner = run_git) -> PublishResult:
    """Build every manifest service, push the tagged images, optionally patch a workflow."""
    project_dir = os.path.abspath(config.project_dir)
    compose_file = os.path.join(project_dir, config.compose_file)

    tag = resolve_version_tag(config.github_sha, cwd=project_dir, git=git)
    log_event("INFO", f"Using registry repo: {config.repo}")
    log_event("INFO", f"Computed tag: {tag}")

    services = list_services(compose_file)
    log_event("INFO", f"Detected services: {len(services)} ({', '.join(services)})")

    images = image_references(config.repo, tag, services)
    for name, ref in images.items():
        log_event("INFO", f"Will tag {name} -> {ref}")

    result = PublishResult(tag=tag, images=images)
    override = os.path.join(os.path.dirname(compose_file), TRANSIENT_OVERRIDE_NAME)

    with transient_override(override, images):
        log_event("INFO", "Building images (--pull --no-cache)")
        try:
            runtime.compose_build([compose_file, override], cwd=project_dir)
        except ComposeError as e:
            raise BuildError(f"Image build failed: {e}") from e

        log_event("INFO", "Logging in to registry")
        try:
            runtime.login(config.username, config.token, config.registry)
        except DockerException as e:
            raise PushError(f"Registry login failed: {e}") from e

        for ref in images.values():
            log_event("INFO", f"Pushing {ref}")
            try:
                runtime.push_image(ref)
            except DockerException as e:
                raise PushError(f"Push of {ref} failed: {e}") from e
            result.pushed.append(ref)

        if config.workflow_file:
            result.workflow_patched = _update_workflow(config.workflow_file, tag)
        else:
            log_event("INFO", "No workflow file provided. Skipping workflow update step.")

    log_event("INFO", f"Done. Built and pushed {len(result.pushed)} image(s) with tag {tag}.")
    return result
