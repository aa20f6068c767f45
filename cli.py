from __future__ import annotations

import argparse
import sys

from cdh.docker_ops import DockerRuntime
from cdh.errors import ConfigError, DeployError, HealthCheckFailed
from cdh.events import configure_logging, log_event
from cdh.publisher import publish
from cdh.rollout import rollout
from cdh.settings import PublishConfig, RolloutConfig, Settings

ROLLOUT_USAGE = "Usage: cdh rollout <image> [target-dir] [service-name]\nExample: cdh rollout username/app:abc1234 ~/server app"


def _build_parser(defaults: Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cdh", description="Container Deploy Harness CLI")
    p.add_argument("--log-level", default=defaults.log_level, help="DEBUG, INFO, WARNING, ERROR")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_pub = sub.add_parser(
        "publish",
        help="Build, tag and push images",
        description="Environment: DOCKERHUB_REPO, DOCKERHUB_USERNAME, DOCKERHUB_TOKEN, optional GITHUB_SHA.",
    )
    s_pub.add_argument("--workflow-file", default=None, help="Replace __IMAGE_TAG__ in this file with the tag")
    s_pub.add_argument("--compose-file", default=None, help="Build manifest (default docker-compose.yml)")
    s_pub.add_argument("--project-dir", default=".")

    s_roll = sub.add_parser("rollout", help="Deploy an image on this host and gate on health")
    s_roll.add_argument("image", nargs="?", default=None)
    s_roll.add_argument("target_dir", nargs="?", default=defaults.app_dir)
    s_roll.add_argument("service_name", nargs="?", default=defaults.service_name)
    s_roll.add_argument("--compose-file", default=defaults.compose_file)
    s_roll.add_argument("--health-url", default=defaults.health_url)
    s_roll.add_argument("--retries", type=int, default=defaults.health_retries)
    s_roll.add_argument("--wait", type=float, default=defaults.health_wait_s, help="Seconds between health attempts")
    s_roll.add_argument("--timeout", type=float, default=defaults.health_timeout_s, help="Per-request timeout")
    s_roll.add_argument("--host-port", type=int, default=None, help="Host port to free before starting")
    s_roll.add_argument("--repo", default=None, help="Repository for image-ancestry matching")
    s_roll.add_argument("--no-prune", action="store_true", help="Skip dangling image cleanup")
    return p


def _run_publish(args: argparse.Namespace, runtime: DockerRuntime) -> int:
    config = PublishConfig.from_env(
        workflow_file=args.workflow_file,
        compose_file=args.compose_file,
        project_dir=args.project_dir,
    )
    result = publish(config, runtime)
    print("\n".join(result.pushed))
    return 0


def _run_rollout(args: argparse.Namespace, runtime: DockerRuntime, defaults: Settings) -> int:
    if not args.image:
        print(ROLLOUT_USAGE, file=sys.stderr)
        return 1
    config = RolloutConfig.build(
        image=args.image,
        app_dir=args.target_dir,
        service_name=args.service_name,
        compose_file=args.compose_file,
        health_url=args.health_url,
        retries=args.retries,
        wait_s=args.wait,
        timeout_s=args.timeout,
        host_port=args.host_port or defaults.host_port or None,
        repo=args.repo,
        prune_images=defaults.prune_images and not args.no_prune,
    )
    outcome = rollout(config, runtime)
    print(f"{outcome.image} healthy after {outcome.health.attempts} attempt(s)")
    return 0


def main(argv: list[str] | None = None, runtime: DockerRuntime | None = None) -> int:
    defaults = Settings()
    args = _build_parser(defaults).parse_args(argv)
    configure_logging(args.log_level)
    runtime = runtime or DockerRuntime()

    try:
        if args.cmd == "publish":
            return _run_publish(args, runtime)
        if args.cmd == "rollout":
            return _run_rollout(args, runtime, defaults)
    except ConfigError as e:
        log_event("ERROR", str(e))
        return 1
    except HealthCheckFailed as e:
        log_event("ERROR", f"Deployment failed: {e}")
        return 1
    except DeployError as e:
        log_event("ERROR", f"{type(e).__name__}: {e}")
        return 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
