"""Data types and the client interface of the container engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import IO, Any, Protocol


@dataclass
class Port:
    """A port published by a container."""

    private_port: int = 0
    public_port: int = 0
    type: str = ""
    ip: str = ""


@dataclass
class Container:
    """A container as returned by a listing."""

    id: str = ""
    names: list[str] = field(default_factory=list)
    image: str = ""
    status: str = ""
    state: str = ""
    ports: list[Port] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class ImageSummary:
    """An image as returned by a listing."""

    id: str = ""
    repo_tags: list[str] = field(default_factory=list)


@dataclass
class ContainerListOptions:
    """Parameters of a container listing."""

    show_all: bool = False
    limit: int = 0
    filters: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class ImageListOptions:
    """Parameters of an image listing."""

    show_all: bool = False
    filters: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class LogsOptions:
    """Parameters of a log request."""

    show_stdout: bool = False
    show_stderr: bool = False
    follow: bool = False
    since: str = ""
    until: str = ""


@dataclass
class Mount:
    """A mount into a container."""

    type: str = ""
    source: str = ""
    target: str = ""
    read_only: bool = False


@dataclass
class DeviceMapping:
    """A host device mapped into a container."""

    path_on_host: str = ""
    path_in_container: str = ""
    cgroup_permissions: str = ""


@dataclass
class PortBinding:
    """A host address a container port is bound to."""

    host_ip: str = ""
    host_port: str = ""


@dataclass
class RestartPolicySpec:
    """The engine's restart policy for a container."""

    name: str = ""
    maximum_retry_count: int = 0


@dataclass
class Resources:
    """Resource limits of a container."""

    nano_cpus: int = 0
    memory: int = 0
    memory_reservation: int = 0
    devices: list[DeviceMapping] = field(default_factory=list)


@dataclass
class HostConfig:
    """Host-side configuration of a container."""

    mounts: list[Mount] = field(default_factory=list)
    network_mode: str = ""
    port_bindings: dict[str, list[PortBinding]] = field(default_factory=dict)
    cap_add: list[str] = field(default_factory=list)
    cap_drop: list[str] = field(default_factory=list)
    restart_policy: RestartPolicySpec = field(default_factory=RestartPolicySpec)
    resources: Resources = field(default_factory=Resources)

    def is_host_network(self) -> bool:
        """Whether the container shares the host's network."""
        return self.network_mode == "host"


@dataclass
class ContainerConfig:
    """Container-side configuration of a container."""

    image: str = ""
    cmd: list[str] | None = None
    env: list[str] = field(default_factory=list)
    labels: dict[str, str] | None = None
    exposed_ports: set[str] = field(default_factory=set)
    user: str = ""
    attach_stdin: bool = False
    attach_stdout: bool = False
    attach_stderr: bool = False
    stdin_once: bool = False
    tty: bool = False


@dataclass
class CreateResponse:
    """The result of creating a container."""

    id: str = ""
    warnings: list[str] = field(default_factory=list)


@dataclass
class ContainerJSON:
    """The full description of a container."""

    id: str = ""
    name: str = ""
    config: ContainerConfig = field(default_factory=ContainerConfig)
    host_config: HostConfig = field(default_factory=HostConfig)
    running: bool = False
    paused: bool = False


@dataclass
class LoadResponse:
    """The result of loading an image archive."""

    body: IO[bytes] | None = None
    json: bool = False


@dataclass
class VolumeInfo:
    """A volume known to the engine."""

    name: str = ""
    driver: str = ""
    created_at: str = ""
    mountpoint: str = ""
    options: dict[str, str] | None = None
    labels: dict[str, str] | None = None


@dataclass
class VolumeCreateOptions:
    """Parameters for creating a volume."""

    name: str = ""
    driver: str = ""
    labels: dict[str, str] | None = None
    driver_opts: dict[str, str] = field(default_factory=dict)


@dataclass
class PluginInfo:
    """A plugin known to the engine."""

    id: str = ""
    name: str = ""
    enabled: bool = False
    config: dict[str, Any] = field(default_factory=dict)


@dataclass
class PruneReport:
    """What a prune removed."""

    deleted: list[str] = field(default_factory=list)
    space_reclaimed: int = 0


class DockerClient(Protocol):
    """The engine operations the manager relies on."""

    def close(self) -> None:
        """Close the connection to the engine."""

    def container_create(
        self, config: ContainerConfig, host_config: HostConfig, name: str
    ) -> CreateResponse:
        """Create a container named ``name``."""

    def container_inspect(self, container_id: str) -> ContainerJSON:
        """Describe one container."""

    def container_list(self, options: ContainerListOptions) -> list[Container]:
        """List containers."""

    def container_logs(self, container: str, options: LogsOptions) -> IO[bytes]:
        """Open the log output of a container."""

    def container_remove(self, container: str, force: bool) -> None:
        """Remove a container."""

    def container_start(self, container: str) -> None:
        """Start a created container."""

    def container_stop(self, container: str, timeout: int | None) -> None:
        """Stop a container, killing it after ``timeout`` seconds unless negative."""

    def image_list(self, options: ImageListOptions) -> list[ImageSummary]:
        """List images."""

    def image_load(self, source: IO[bytes], quiet: bool) -> LoadResponse:
        """Load an image archive."""

    def image_pull(self, ref: str, registry_auth: str) -> IO[bytes]:
        """Pull an image, returning a stream of JSON progress messages."""

    def image_remove(self, ref: str, force: bool) -> list[Any]:
        """Remove an image."""

    def image_tag(self, source: str, target: str) -> None:
        """Tag an image."""

    def plugin_create(self, context: IO[bytes], repo_name: str) -> None:
        """Create a plugin from a tar archive."""

    def plugin_enable(self, name: str) -> None:
        """Enable a plugin."""

    def plugin_disable(self, name: str, force: bool) -> None:
        """Disable a plugin."""

    def plugin_remove(self, name: str, force: bool) -> None:
        """Remove a plugin."""

    def plugin_list(self) -> list[PluginInfo]:
        """List plugins."""

    def volume_create(self, options: VolumeCreateOptions) -> VolumeInfo:
        """Create a volume."""

    def volume_list(self, filters: list[tuple[str, str]]) -> list[VolumeInfo]:
        """List volumes."""

    def volume_remove(self, volume_id: str, force: bool) -> None:
        """Remove a volume."""

    def containers_prune(self) -> PruneReport:
        """Remove stopped containers."""

    def images_prune(self) -> PruneReport:
        """Remove dangling images."""