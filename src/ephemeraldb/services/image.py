"""Image resolution for ephemeraldb."""

from typing import Callable, List

from ephemeraldb.errors import CommandError, ImagePullError
from ephemeraldb.errors_catalog import actionable_error


class ImageService:
    """Makes sure an image is present in the local cache before provisioning."""

    def __init__(self, logger, console, run_cmd: Callable):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd

    def list_local_tags(self) -> List[str]:
        try:
            result = self.run_cmd(
                ["docker", "image", "ls", "--all", "--format", "{{.Repository}}:{{.Tag}}"],
                check=True,
                capture_output=True,
            )
        except CommandError as exc:
            raise ImagePullError(f"{actionable_error('image_list_failed')}\n{exc}") from exc

        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def has_image(self, name: str) -> bool:
        return any(name in tag for tag in self.list_local_tags())

    def ensure_image(self, name: str) -> bool:
        """Pull ``name`` when no local tag matches. Returns True when a pull happened."""
        if self.has_image(name):
            self.logger.debug("Image %s found in local cache", name)
            return False

        self.console.print(f"[blue]Pulling image {name}...[/blue]")
        self.logger.info("Pulling image %s", name)

        # The pull output is fully consumed before returning, so the image is complete.
        try:
            self.run_cmd(["docker", "pull", name], check=True, capture_output=True)
        except CommandError as exc:
            raise ImagePullError(f"{actionable_error('image_pull_failed', image=name)}\n{exc}") from exc

        self.console.print(f"[green]Image {name} is available.[/green]")
        return True
