"""Options shared by container, image, volume and plugin operations."""

from __future__ import annotations

import enum
import math
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import timedelta
from fractions import Fraction
from typing import Any, Protocol

from containerz.messages import (
    Credentials,
    DeployResponse,
    Device,
    ListContainerResponse,
    ListImageResponse,
    ListVolumeResponse,
    LogResponse,
    Volume,
)


class Stream(Protocol):
    """Receives deploy progress reports."""

    def send(self, msg: DeployResponse) -> None:
        """Send one progress report to the client."""


class LogStreamer(Protocol):
    """Receives container log chunks."""

    def send(self, msg: LogResponse) -> None:
        """Send one log chunk to the client."""


class ListContainerStreamer(Protocol):
    """Receives container listing entries."""

    def send(self, msg: ListContainerResponse) -> None:
        """Send one container entry to the client."""


class ListImageStreamer(Protocol):
    """Receives image listing entries."""

    def send(self, msg: ListImageResponse) -> None:
        """Send one image entry to the client."""


class ListVolumeStreamer(Protocol):
    """Receives volume listing entries."""

    def send(self, msg: ListVolumeResponse) -> None:
        """Send one volume entry to the client."""


class FilterKey(str, enum.Enum):
    """Keys that listings can be filtered on."""

    IMAGE = "image"
    CONTAINER = "container"
    STATE = "state"
    VOLUME = "volume"


@dataclass
class Options:
    """The collected settings for one operation."""

    target_name: str = ""
    target_tag: str = ""
    credentials: Credentials | None = None
    stream_client: Stream | None = None
    force: bool = False
    instance_name: str = ""
    port_mapping: dict[int, int] = field(default_factory=dict)
    env_mapping: dict[str, str] = field(default_factory=dict)
    follow: bool = False
    since: timedelta = timedelta(0)
    until: timedelta = timedelta(0)
    show_all: bool = False
    limit: int = 0
    filters: dict[FilterKey | str, list[str]] = field(default_factory=dict)
    volumes: list[Volume] = field(default_factory=list)
    volume_driver_options: Any = None
    volume_labels: dict[str, str] = field(default_factory=dict)
    network: str = ""
    capabilities: Any = None
    restart_policy: Any = None
    run_as: Any = None
    labels: dict[str, str] = field(default_factory=dict)
    is_plugin: bool = False
    cpu: float = 0.0
    soft_memory: int = 0
    hard_memory: int = 0
    devices: list[Device] = field(default_factory=list)

    def filter_pairs(self) -> Iterator[tuple[str, str]]:
        """Yield every (key, value) filter pair, keys as plain strings."""
        for key, values in self.filters.items():
            name = key.value if isinstance(key, FilterKey) else str(key)
            for value in values:
                yield name, value


Option = Callable[[Options], None]


def with_target(image: str, tag: str) -> Option:
    """Set the target image name and tag; an empty tag means ``latest``."""

    def apply(target: Options) -> None:
        target.target_name = image
        target.target_tag = tag or "latest"

    return apply


def with_registry_auth(creds: Credentials) -> Option:
    """Set the registry credentials."""

    def apply(target: Options) -> None:
        target.credentials = creds

    return apply


def with_stream(client: Stream) -> Option:
    """Set the stream that progress reports are sent to."""

    def apply(target: Options) -> None:
        target.stream_client = client

    return apply


def force() -> Option:
    """Ask for the operation to be forced."""

    def apply(target: Options) -> None:
        target.force = True

    return apply


def with_instance_name(instance: str) -> Option:
    """Set the name of the container instance."""

    def apply(target: Options) -> None:
        target.instance_name = instance

    return apply


def with_ports(port_mappings: dict[int, int]) -> Option:
    """Set the internal-to-external port mapping."""

    def apply(target: Options) -> None:
        target.port_mapping = port_mappings

    return apply


def with_env(env_mapping: dict[str, str]) -> Option:
    """Set the environment variables for the container."""

    def apply(target: Options) -> None:
        target.env_mapping = env_mapping

    return apply


def follow() -> Option:
    """Ask for logs to be followed."""

    def apply(target: Options) -> None:
        target.follow = True

    return apply


def with_until(t: timedelta) -> Option:
    """Set until when logs are collected."""

    def apply(target: Options) -> None:
        target.until = t

    return apply


def with_since(t: timedelta) -> Option:
    """Set from when logs are collected."""

    def apply(target: Options) -> None:
        target.since = t

    return apply


def with_filter(filter_: dict[FilterKey | str, list[str]]) -> Option:
    """Set the listing filter."""

    def apply(target: Options) -> None:
        target.filters = filter_

    return apply


def with_volumes(volumes: list[Volume]) -> Option:
    """Set the volumes attached to the container."""

    def apply(target: Options) -> None:
        target.volumes = volumes

    return apply


def with_volume_driver_opts(opts: Any) -> Option:
    """Set the volume driver options."""

    def apply(target: Options) -> None:
        target.volume_driver_options = opts

    return apply


def with_volume_labels(labels: dict[str, str]) -> Option:
    """Set the labels applied to a new volume."""

    def apply(target: Options) -> None:
        target.volume_labels = labels

    return apply


def with_network(network: str) -> Option:
    """Set the network the container is attached to."""

    def apply(target: Options) -> None:
        target.network = network

    return apply


def with_capabilities(opts: Any) -> Option:
    """Set the capabilities to add and remove."""

    def apply(target: Options) -> None:
        target.capabilities = opts

    return apply


def with_restart_policy(opts: Any) -> Option:
    """Set the container restart policy."""

    def apply(target: Options) -> None:
        target.restart_policy = opts

    return apply


def with_run_as(opts: Any) -> Option:
    """Set the user and group the container runs as."""

    def apply(target: Options) -> None:
        target.run_as = opts

    return apply


def with_labels(labels: dict[str, str]) -> Option:
    """Set the labels attached to the container."""

    def apply(target: Options) -> None:
        target.labels = labels

    return apply


def with_cpus(cpus: float) -> Option:
    """Set the CPU limit."""

    def apply(target: Options) -> None:
        target.cpu = cpus

    return apply


def with_soft_limit(mem: int) -> Option:
    """Set the soft memory limit in bytes."""

    def apply(target: Options) -> None:
        target.soft_memory = mem

    return apply


def with_hard_limit(mem: int) -> Option:
    """Set the hard memory limit in bytes."""

    def apply(target: Options) -> None:
        target.hard_memory = mem

    return apply


def with_devices(devices: list[Device]) -> Option:
    """Set the devices attached to the container."""

    def apply(target: Options) -> None:
        target.devices = devices

    return apply


def parse_cpus(value: float) -> int:
    """Convert a CPU count to nano-CPUs, exactly, or raise ValueError."""
    if not math.isfinite(value):
        raise ValueError(f"invalid cpu value {value}")
    nano = Fraction(value) * 1_000_000_000
    if nano.denominator != 1:
        raise ValueError("value is too precise")
    return nano.numerator


def apply_options(*args: Option) -> Options:
    """Build an :class:`Options` with every given option applied in order."""
    options = Options()
    for opt in args:
        opt(options)
    return options