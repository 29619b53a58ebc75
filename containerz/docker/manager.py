"""A container manager that drives a container engine."""

from __future__ import annotations

from types import TracebackType

from containerz.docker.api import DockerClient
from containerz.docker.images import ImageOperations
from containerz.docker.janitor import CLEANING_INTERVAL, Vacuum
from containerz.docker.plugins import (
    PLUGIN_LOCATION,
    STAGING_LOCATION,
    PluginOperations,
)
from containerz.docker.update import UpdateOperations
from containerz.docker.volumes import VolumeOperations


class Manager(ImageOperations, VolumeOperations, UpdateOperations, PluginOperations):
    """Container, image, volume and plugin orchestration over one engine client.

    A background janitor prunes stopped containers and dangling images while
    the manager is started.
    """

    def __init__(
        self,
        client: DockerClient,
        *,
        janitor_interval: float = CLEANING_INTERVAL,
        plugin_location: str = PLUGIN_LOCATION,
        staging_location: str = STAGING_LOCATION,
    ) -> None:
        UpdateOperations.__init__(self, client)
        PluginOperations.__init__(self, client, plugin_location, staging_location)
        self.janitor = Vacuum(client, interval=janitor_interval)

    def start(self) -> None:
        """Start the background janitor."""
        self.janitor.start()

    def stop(self) -> None:
        """Stop the janitor and close the connection to the engine."""
        self.janitor.stop()
        self.client.close()

    def __enter__(self) -> Manager:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()