from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Process-wide defaults. Read from the environment when instantiated."""

    # Rollout
    app_dir: str = field(default_factory=lambda: os.getenv("CDH_APP_DIR", os.path.expanduser("~/server")))
    service_name: str = field(default_factory=lambda: os.getenv("CDH_SERVICE_NAME", "app"))
    compose_file: str = field(default_factory=lambda: os.getenv("CDH_COMPOSE_FILE", "docker-compose.yml"))
    host_port: int = field(default_factory=lambda: _env_int("CDH_HOST_PORT", 0))  # 0: read from manifest

    # Health gate
    health_url: str = field(default_factory=lambda: os.getenv("CDH_HEALTH_URL", "http://localhost:8080/health"))
    health_retries: int = field(default_factory=lambda: _env_int("CDH_HEALTH_RETRIES", 15))
    health_wait_s: float = field(default_factory=lambda: _env_float("CDH_HEALTH_WAIT_S", 2.0))
    health_timeout_s: float = field(default_factory=lambda: _env_float("CDH_HEALTH_TIMEOUT_S", 5.0))

    # Housekeeping
    prune_images: bool = field(default_factory=lambda: _env_bool("CDH_PRUNE_IMAGES", True))
    log_level: str = field(default_factory=lambda: os.getenv("CDH_LOG_LEVEL", "INFO"))


def _config_error(exc: ValidationError) -> ConfigError:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ())) or "config"
        parts.append(f"{loc}: {err.get('msg')}")
    return ConfigError("; ".join(parts))


class PublishConfig(BaseModel):
    repo: str = Field(..., description="Registry repository, e.g. myuser/myapp")
    username: str = Field(..., description="Registry user")
    token: str = Field(..., description="Registry access token")
    registry: str | None = Field(None, description="Registry host; Docker Hub when unset")
    compose_file: str = "docker-compose.yml"
    project_dir: str = "."
    workflow_file: str | None = None
    github_sha: str | None = None

    @field_validator("repo", "username", "token")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        workflow_file: str | None = None,
        compose_file: str | None = None,
        project_dir: str = ".",
    ) -> "PublishConfig":
        """Build the publisher config from DOCKERHUB_* / GITHUB_SHA variables."""
        env = os.environ if environ is None else environ
        if not env.get("DOCKERHUB_REPO", "").strip():
            raise ConfigError("set DOCKERHUB_REPO (example: myuser/myapp)")
        if not env.get("DOCKERHUB_USERNAME", "").strip() or not env.get("DOCKERHUB_TOKEN", "").strip():
            raise ConfigError("set DOCKERHUB_USERNAME and DOCKERHUB_TOKEN (registry credentials)")
        try:
            return cls(
                repo=env["DOCKERHUB_REPO"],
                username=env["DOCKERHUB_USERNAME"],
                token=env["DOCKERHUB_TOKEN"],
                registry=env.get("DOCKER_REGISTRY") or None,
                compose_file=compose_file or env.get("CDH_COMPOSE_FILE") or "docker-compose.yml",
                project_dir=project_dir,
                workflow_file=workflow_file,
                github_sha=env.get("GITHUB_SHA") or None,
            )
        except ValidationError as e:
            raise _config_error(e) from e


class RolloutConfig(BaseModel):
    image: str = Field(..., description="Fully qualified image reference (repo:tag)")
    app_dir: str = Field(..., description="Directory holding the base compose manifest")
    service_name: str = Field("app", description="Compose service to pin")
    compose_file: str = "docker-compose.yml"
    health_url: str = "http://localhost:8080/health"
    retries: int = Field(15, ge=1, le=1000)
    wait_s: float = Field(2.0, ge=0, le=3600)
    timeout_s: float = Field(5.0, gt=0, le=300)
    host_port: int | None = Field(None, ge=1, le=65535, description="Host port the service publishes")
    repo: str | None = Field(None, description="Repository used for image-ancestry matching")
    prune_images: bool = True

    @field_validator("image", "app_dir", "service_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("health_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("health_url must be an http(s) URL")
        return v

    @classmethod
    def build(cls, **values) -> "RolloutConfig":
        """Validate once at the boundary, mapping pydantic errors to ConfigError."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise _config_error(e) from e
