"""Actionable error catalog for ephemeraldb."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "docker_not_found": {
        "what": "Required command not found: {command}.",
        "next": "Install Docker and make sure `{command}` is on PATH.",
    },
    "image_list_failed": {
        "what": "Could not list local Docker images.",
        "next": "Check that the Docker daemon is running and reachable.",
    },
    "image_pull_failed": {
        "what": "Failed to pull image {image}.",
        "next": "Check the image name and registry connectivity, or pull it manually.",
    },
    "container_create_failed": {
        "what": "Failed to create container {name} from {image}.",
        "next": "Inspect the Docker daemon logs and verify the image runs on this host.",
    },
    "container_start_failed": {
        "what": "Failed to start container {name}.",
        "next": "Check `docker events` and host resource limits; the container is auto-removed.",
    },
    "endpoint_not_found": {
        "what": "Container {name} has no host port mapping for {port}.",
        "next": "Verify the Docker network setup publishes container ports to the host.",
    },
    "container_not_running": {
        "what": "Container {name} is not running.",
        "next": "Check the container error log; the engine probably exited during startup.",
    },
    "readiness_timeout": {
        "what": "Database at {address} was not ready after {seconds}s.",
        "next": "Increase `ready_timeout_seconds` or check available CPU and memory.",
    },
    "migration_failed": {
        "what": "Migration {version} ({name}) failed.",
        "next": "Fix the migration script; the database was created empty.",
    },
}


def actionable_error(code: str, **kwargs) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
