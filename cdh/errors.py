from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .health import HealthResult


class DeployError(Exception):
    """Base class for failures that abort a publish or rollout."""


class ConfigError(DeployError):
    pass


class ManifestError(DeployError):
    pass


class BuildError(DeployError):
    pass


class PushError(DeployError):
    pass


class PullError(DeployError):
    pass


class StartError(DeployError):
    pass


class HealthCheckFailed(DeployError):
    def __init__(self, message: str, result: "HealthResult") -> None:
        super().__init__(message)
        self.result = result
