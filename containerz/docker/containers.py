"""Container operations: listing, logs, removal, starting and stopping."""

from __future__ import annotations

import contextlib
import json
import logging
import shlex
from collections.abc import Iterable, Mapping
from datetime import timedelta

from containerz.docker.api import (
    Container,
    ContainerConfig,
    ContainerListOptions,
    DeviceMapping,
    DockerClient,
    HostConfig,
    ImageListOptions,
    LogsOptions,
    Mount,
    PortBinding,
    Resources,
    RestartPolicySpec,
)
from containerz.docker.images import find_image
from containerz.messages import (
    Code,
    ContainerStatus,
    DevicePermission,
    ListContainerResponse,
    LogResponse,
    RestartMode,
    StatusError,
)
from containerz.options import (
    ListContainerStreamer,
    LogStreamer,
    Option,
    apply_options,
    parse_cpus,
)

logger = logging.getLogger(__name__)

#: Upper bound, in seconds, on how long the engine waits before killing a container.
MAXIMUM_STOP_TIMEOUT = 10

_COPY_CHUNK = 32 * 1024

_RESTART_MODES = {
    RestartMode.ALWAYS: "always",
    RestartMode.ON_FAILURE: "on-failure",
    RestartMode.NONE: "no",
    RestartMode.UNLESS_STOPPED: "unless-stopped",
}


def string_to_status(state: str) -> ContainerStatus:
    """Map an engine status line to a coarse container status."""
    if "Up" in state:
        return ContainerStatus.RUNNING
    if "Exited" in state:
        return ContainerStatus.STOPPED
    return ContainerStatus.UNSPECIFIED


def _strip_name(name: str) -> str:
    return name.replace("/", "", 1)


def _matches_instance(container: Container, instance: str) -> bool:
    return any(_strip_name(name) == instance for name in container.names)


def check_existing_instance_and_ports(
    instance: str, ports: Mapping[int, int] | None, containers: Iterable[Container]
) -> None:
    """Raise if ``instance`` is already a container name or an external port is taken."""
    ports = ports or {}
    if not instance and not ports:
        return
    for cnt in containers:
        if _matches_instance(cnt, instance):
            raise StatusError(
                Code.ALREADY_EXISTS, f"instance name {instance} already in use"
            )
        for port in cnt.ports:
            for ext in ports.values():
                if ext == port.public_port:
                    raise StatusError(Code.UNAVAILABLE, f"port {ext} already in use")


def cgroup_permissions(perms: Iterable[DevicePermission]) -> str:
    """Return the cgroup permission string for a device, in ``rwm`` order."""
    wanted = set(perms)
    return "".join(
        letter
        for perm, letter in (
            (DevicePermission.READ, "r"),
            (DevicePermission.WRITE, "w"),
            (DevicePermission.MKNOD, "m"),
        )
        if perm in wanted
    )


def _fraction(value: int, unit: int) -> str:
    whole, rem = divmod(value, unit)
    if not rem:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{str(rem).rjust(digits, '0').rstrip('0')}"


def _format_duration(td: timedelta) -> str:
    """Render a duration the way the engine's log API expects, e.g. ``1m30s``."""
    ns = ((td.days * 86400 + td.seconds) * 1_000_000 + td.microseconds) * 1000
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 1_000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_fraction(ns, 1_000)}µs"
    if ns < 1_000_000_000:
        return f"{sign}{_fraction(ns, 1_000_000)}ms"
    hours, rest = divmod(ns, 3600 * 10**9)
    minutes, rest = divmod(rest, 60 * 10**9)
    seconds = _fraction(rest, 10**9)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def _tcp_port(port: int) -> str:
    if not 0 <= port <= 65535:
        raise ValueError(f"invalid port {port}")
    return f"{port}/tcp"


class ContainerOperations:
    """Container operations against a container engine."""

    def __init__(self, client: DockerClient) -> None:
        self.client = client

    def container_list(
        self, all_: bool, limit: int, srv: ListContainerStreamer, *args: Option
    ) -> None:
        """Send the containers on the target, filtered as asked, to ``srv``."""
        optionz = apply_options(*args)
        list_opts = ContainerListOptions(
            show_all=all_, limit=limit, filters=list(optionz.filter_pairs())
        )
        for cnt in self.client.container_list(list_opts):
            try:
                srv.send(
                    ListContainerResponse(
                        id=cnt.id,
                        name=",".join(cnt.names),
                        image_name=cnt.image,
                        status=string_to_status(cnt.status),
                    )
                )
            except EOFError:
                return

    def container_logs(self, instance: str, srv: LogStreamer, *args: Option) -> None:
        """Send the log output of ``instance`` to ``srv``, following it if asked."""
        optionz = apply_options(*args)
        containers = self.client.container_list(ContainerListOptions(show_all=True))
        if not containers:
            raise StatusError(Code.NOT_FOUND, f"container {instance} not found")

        log_opts = LogsOptions(show_stdout=True, show_stderr=True, follow=optionz.follow)
        if optionz.since:
            log_opts.since = _format_duration(optionz.since)
        if optionz.until:
            # The engine is given the "since" value here as well.
            log_opts.until = _format_duration(optionz.since)

        resp = self.client.container_logs(instance, log_opts)
        with contextlib.closing(resp):
            while chunk := resp.read(_COPY_CHUNK):
                srv.send(LogResponse(msg=chunk.decode("utf-8", errors="replace")))

    def container_remove(self, name: str, *args: Option) -> None:
        """Remove a container; a running one only when the force option is set."""
        optionz = apply_options(*args)
        try:
            containers = self.client.container_list(ContainerListOptions(show_all=True))
        except Exception as exc:
            raise StatusError(Code.INTERNAL, f"unable to list containers: {exc}") from exc

        for cnt in containers:
            if not _matches_instance(cnt, name):
                continue
            if string_to_status(cnt.status) is ContainerStatus.RUNNING and not optionz.force:
                raise StatusError(Code.FAILED_PRECONDITION, f"container {name} is running")
            try:
                self.client.container_remove(name, force=optionz.force)
            except Exception as exc:
                raise StatusError(
                    Code.INTERNAL, f"unable to remove container: {exc}"
                ) from exc
            return

        raise StatusError(Code.NOT_FOUND, f"container {name} not found")

    def container_start(self, image_name: str, tag: str, cmd: str, *args: Option) -> str:
        """Create and start a container from ``image_name:tag``; return its name or id."""
        optionz = apply_options(*args)

        images = self.client.image_list(ImageListOptions())
        ref = f"{image_name}:{tag}"
        find_image(ref, images)

        containers = self.client.container_list(ContainerListOptions())
        check_existing_instance_and_ports(
            optionz.instance_name, optionz.port_mapping, containers
        )

        mounts = [
            Mount(type="volume", source=vol.name, target=vol.mount_point, read_only=vol.read_only)
            for vol in optionz.volumes
        ]
        devices = [
            DeviceMapping(
                path_on_host=dev.src_path,
                path_in_container=dev.dst_path,
                cgroup_permissions=cgroup_permissions(dev.permissions),
            )
            for dev in optionz.devices
        ]

        try:
            cpu = parse_cpus(optionz.cpu)
        except ValueError as exc:
            raise ValueError(f"unable to parse cpu limit {optionz.cpu:f}: {exc}") from exc

        host_config = HostConfig(
            mounts=mounts,
            network_mode="host",
            resources=Resources(
                nano_cpus=cpu,
                memory=optionz.hard_memory,
                memory_reservation=optionz.soft_memory,
                devices=devices,
            ),
        )

        try:
            split_cmd = shlex.split(cmd)
        except ValueError as exc:
            raise StatusError(
                Code.INVALID_ARGUMENT,
                f"failed to split command {json.dumps(cmd)}, got error {exc}",
            ) from exc

        config = ContainerConfig(
            cmd=split_cmd or None,
            labels=optionz.labels,
            image=ref,
            tty=True,
        )

        if optionz.port_mapping:
            port_map: dict[str, list[PortBinding]] = {}
            port_set: set[str] = set()
            for internal, external in optionz.port_mapping.items():
                key = _tcp_port(internal)
                port_set.add(key)
                host_port = str(external)
                port_map[key] = [
                    PortBinding(host_ip="0.0.0.0", host_port=host_port),
                    PortBinding(host_ip="::", host_port=host_port),
                ]
            host_config.port_bindings = port_map
            config.exposed_ports = port_set

        config.env.extend(f"{k}={v}" for k, v in optionz.env_mapping.items())

        if optionz.network:
            host_config.network_mode = optionz.network

        if optionz.capabilities is not None:
            host_config.cap_add = list(optionz.capabilities.add)
            host_config.cap_drop = list(optionz.capabilities.remove)

        if optionz.restart_policy is not None:
            policy = optionz.restart_policy.policy
            mode = _RESTART_MODES.get(policy)
            if mode is None:
                raise StatusError(
                    Code.FAILED_PRECONDITION,
                    f"unkown restart policy '{getattr(policy, 'name', policy)}'",
                )
            host_config.restart_policy = RestartPolicySpec(
                name=mode, maximum_retry_count=int(optionz.restart_policy.attempts)
            )

        if optionz.run_as is not None:
            user = optionz.run_as.user
            if not user:
                raise StatusError(
                    Code.FAILED_PRECONDITION, "user can not be empty in RunAs option"
                )
            if optionz.run_as.group:
                user = f"{user}:{optionz.run_as.group}"
            config.user = user

        try:
            resp = self.client.container_create(config, host_config, optionz.instance_name)
        except Exception as exc:
            raise StatusError(Code.INTERNAL, f"unable to create container: {exc}") from exc

        try:
            self.client.container_start(resp.id)
        except Exception as exc:
            raise StatusError(Code.INTERNAL, f"unable to start container: {exc}") from exc

        return optionz.instance_name or resp.id

    def container_stop(
        self, instance: str, *args: Option, timeout: float | None = None
    ) -> None:
        """Stop a container.

        ``timeout`` is the time left, in seconds, for the whole operation. With
        the force option the engine may kill the container; without it, it never does.
        """
        optionz = apply_options(*args)
        containers = self.client.container_list(ContainerListOptions())

        if not instance or not any(_matches_instance(c, instance) for c in containers):
            raise StatusError(Code.NOT_FOUND, f"container {instance} was not found")

        duration = -1
        if optionz.force:
            duration = 0
            if timeout is not None:
                remaining_ns = int(timeout * 1_000_000_000)
                duration = min(remaining_ns // 2, MAXIMUM_STOP_TIMEOUT)

        stop_timeout = None if duration == 0 else duration
        try:
            self.client.container_stop(instance, stop_timeout)
        except Exception as exc:
            logger.warning("container %s failed to stop", instance)
            raise StatusError(
                Code.UNKNOWN, f"failed to stop container {instance} with error {exc}"
            ) from exc