"""Messages exchanged with container service clients, and status errors."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


class Code(enum.IntEnum):
    """Status codes carried by :class:`StatusError`."""

    OK = 0
    CANCELED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @property
    def label(self) -> str:
        """The camel-case name used in error descriptions."""
        if self is Code.OK:
            return "OK"
        return "".join(part.capitalize() for part in self.name.split("_"))


class StatusError(Exception):
    """An error that carries a status code and a description."""

    def __init__(self, code: Code, message: str) -> None:
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"rpc error: code = {self.code.label} desc = {self.message}"

    @classmethod
    def convert(cls, exc: BaseException) -> StatusError:
        """Return ``exc`` as a status error, using UNKNOWN for plain exceptions."""
        if isinstance(exc, cls):
            return exc
        return cls(Code.UNKNOWN, str(exc))


@dataclass
class Credentials:
    """Credentials for logging into an image registry."""

    username: str = ""
    password: str = ""


@dataclass
class Volume:
    """A volume to mount into a container."""

    name: str = ""
    mount_point: str = ""
    read_only: bool = False


class DevicePermission(enum.IntEnum):
    """Access a container is given to a device."""

    UNSPECIFIED = 0
    READ = 1
    WRITE = 2
    MKNOD = 3


@dataclass
class Device:
    """A host device exposed to a container."""

    src_path: str = ""
    dst_path: str = ""
    permissions: list[DevicePermission] = field(default_factory=list)


@dataclass
class Capabilities:
    """Capabilities to add to and remove from a container."""

    add: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)


class RestartMode(enum.IntEnum):
    """When a container is restarted."""

    NONE = 0
    ALWAYS = 1
    ON_FAILURE = 2
    UNLESS_STOPPED = 3


@dataclass
class RestartPolicy:
    """A restart mode with a retry limit."""

    policy: RestartMode = RestartMode.NONE
    attempts: int = 0


@dataclass
class RunAs:
    """The user, and optionally the group, a container runs as."""

    user: str = ""
    group: str = ""


class Driver(enum.IntEnum):
    """Volume driver kinds."""

    UNSPECIFIED = 0
    LOCAL = 1
    CUSTOM = 2


class LocalDriverType(enum.IntEnum):
    """Mount type for the local volume driver."""

    UNSPECIFIED = 0
    NONE = 1


@dataclass
class LocalDriverOptions:
    """Options for the local volume driver."""

    type: LocalDriverType = LocalDriverType.UNSPECIFIED
    options: list[str] = field(default_factory=list)
    mountpoint: str = ""


@dataclass
class CustomOptions:
    """Free-form options for a custom volume driver."""

    options: dict[str, str] = field(default_factory=dict)


class ContainerStatus(enum.IntEnum):
    """Coarse state of a container."""

    UNSPECIFIED = 0
    STOPPED = 1
    RUNNING = 2


@dataclass
class ListContainerResponse:
    """One container in a listing."""

    id: str = ""
    name: str = ""
    image_name: str = ""
    status: ContainerStatus = ContainerStatus.UNSPECIFIED


@dataclass
class LogResponse:
    """A chunk of container log output."""

    msg: str = ""


@dataclass
class ListImageResponse:
    """One image in a listing."""

    id: str = ""
    image_name: str = ""
    tag: str = ""


@dataclass
class ListVolumeResponse:
    """One volume in a listing."""

    name: str = ""
    created: datetime | None = None
    driver: str = ""
    options: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class ImageTransferProgress:
    """Bytes received so far while transferring an image."""

    bytes_received: int = 0


@dataclass
class DeployResponse:
    """A progress report sent while deploying an image."""

    image_transfer_progress: ImageTransferProgress | None = None


@dataclass
class Plugin:
    """A plugin installed in the container runtime."""

    id: str = ""
    instance_name: str = ""
    config: str = ""


@dataclass
class ListPluginsResponse:
    """The plugins installed in the container runtime."""

    plugins: list[Plugin] = field(default_factory=list)