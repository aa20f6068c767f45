from __future__ import annotations

import re
import subprocess
from datetime import datetime, timezone
from typing import Callable, Iterable

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

GitRunner = Callable[[list[str], str | None], str | None]


def run_git(args: list[str], cwd: str | None) -> str | None:
    """Run a git command and return stripped stdout, or None if git is unusable."""
    try:
        proc = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=False)
    except (FileNotFoundError, OSError):
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout.strip() or None


def local_short_sha(cwd: str | None = None, git: GitRunner = run_git) -> str | None:
    if git(["rev-parse", "--is-inside-work-tree"], cwd) != "true":
        return None
    return git(["rev-parse", "--short", "HEAD"], cwd)


def resolve_version_tag(
    github_sha: str | None = None,
    cwd: str | None = None,
    now: datetime | None = None,
    git: GitRunner = run_git,
) -> str:
    """Pick the build tag.

    Order: external commit id (first 7 chars) -> local short sha -> UTC timestamp.
    The first available source wins.
    """
    if github_sha and github_sha.strip():
        return github_sha.strip()[:7]
    sha = local_short_sha(cwd, git)
    if sha:
        return sha
    return (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")


def sanitize_service_name(name: str) -> str:
    """Lowercase and collapse every run outside [a-z0-9] into a single '-'."""
    return _NON_ALNUM_RE.sub("-", name.lower())


def image_reference(repo: str, tag: str, service: str | None = None) -> str:
    if service is None:
        return f"{repo}:{tag}"
    return f"{repo}-{sanitize_service_name(service)}:{tag}"


def image_references(repo: str, tag: str, services: Iterable[str]) -> dict[str, str]:
    """Map each service to its image reference.

    A single service is tagged as repo:tag; several get a per-service suffix.
    """
    names = list(services)
    if len(names) == 1:
        return {names[0]: image_reference(repo, tag)}
    return {s: image_reference(repo, tag, s) for s in names}


def split_image_reference(ref: str) -> tuple[str, str | None]:
    """Split 'registry:5000/repo:tag' into ('registry:5000/repo', 'tag').

    Digests ('repo@sha256:...') are returned whole with no tag.
    """
    if "@" in ref:
        return ref, None
    slash = ref.rfind("/")
    colon = ref.rfind(":")
    if colon > slash:
        return ref[:colon], ref[colon + 1 :]
    return ref, None


_DEFAULT_REGISTRIES = ("docker.io/", "index.docker.io/", "registry-1.docker.io/")


def normalize_repository(repo: str) -> str:
    """Canonical Docker Hub form: 'docker.io/library/nginx' -> 'nginx'."""
    repo = repo.strip()
    for prefix in _DEFAULT_REGISTRIES:
        if repo.startswith(prefix):
            repo = repo[len(prefix) :]
            break
    if repo.startswith("library/") and repo.count("/") == 1:
        repo = repo[len("library/") :]
    return repo
