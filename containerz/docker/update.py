"""Container updates: replacing a container with one built from another image."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Mapping, Sequence

from containerz.docker.api import (
    Container,
    ContainerJSON,
    ContainerListOptions,
    DockerClient,
    ImageListOptions,
)
from containerz.docker.containers import ContainerOperations
from containerz.docker.images import find_image
from containerz.messages import Code, StatusError
from containerz.options import Option, apply_options, with_instance_name

logger = logging.getLogger(__name__)

#: Seconds an asynchronous update may take when no timeout is given.
DEFAULT_ASYNC_TIMEOUT = 5 * 60.0


def container_matches_instance(container: Container, instance: str) -> bool:
    """Whether any of the container's names, without its leading slash, is ``instance``."""
    return any(name.replace("/", "", 1) == instance for name in container.names)


def check_instance_exists(instance: str, containers: Iterable[Container]) -> None:
    """Raise NOT_FOUND unless a container is named ``instance``."""
    if any(container_matches_instance(cnt, instance) for cnt in containers):
        return
    raise StatusError(Code.NOT_FOUND, f"instance name {instance} not found")


def check_port_availability(
    ports: Mapping[int, int] | None,
    containers: Iterable[Container],
    ignore_instance: str,
) -> None:
    """Raise UNAVAILABLE if an external port is published by another container.

    Ports of the container named ``ignore_instance`` are not counted.
    """
    ports = ports or {}
    for cnt in containers:
        if container_matches_instance(cnt, ignore_instance):
            continue
        for port in cnt.ports:
            for ext in ports.values():
                if ext == port.public_port:
                    raise StatusError(Code.UNAVAILABLE, f"port {ext} already in use")


class UpdateOperations(ContainerOperations):
    """Container updates, on top of the basic container operations."""

    def __init__(self, client: DockerClient) -> None:
        super().__init__(client)
        self._update_lock = threading.Lock()
        self.update_in_progress: set[str] = set()

    def container_update(
        self,
        instance: str,
        image: str,
        tag: str,
        cmd: str,
        async_: bool,
        *args: Option,
        timeout: float | None = None,
    ) -> str:
        """Replace container ``instance`` with one running ``image:tag``.

        All checks run before returning. When ``async_`` is set the update itself
        runs in the background and the instance name is returned at once. If
        starting the new container fails, the previous container is restored and
        an error is raised all the same.
        """
        containers = self._update_prechecks(instance, image, tag, *args)
        self._stage_update(instance)

        if async_:
            logger.info(
                "Starting asynchronous update of instance %s to image %s:%s with cmd %s",
                instance,
                image,
                tag,
                cmd,
            )
            budget = timeout if timeout is not None else DEFAULT_ASYNC_TIMEOUT
            deadline = time.monotonic() + budget
            worker = threading.Thread(
                target=self._run_async_update,
                args=(instance, image, tag, cmd, containers, args, deadline),
                name=f"update-{instance}",
                daemon=True,
            )
            try:
                worker.start()
            except RuntimeError:
                self._finish_update(instance)
                raise
            return instance

        deadline = None if timeout is None else time.monotonic() + timeout
        return self._perform_update(instance, image, tag, cmd, containers, args, deadline)

    def _update_prechecks(
        self, instance: str, image: str, tag: str, *args: Option
    ) -> list[Container]:
        optionz = apply_options(*args)
        containers = self.client.container_list(ContainerListOptions(show_all=True))
        images = self.client.image_list(ImageListOptions(show_all=True))
        find_image(f"{image}:{tag}", images)
        check_instance_exists(instance, containers)
        check_port_availability(optionz.port_mapping, containers, instance)
        return containers

    def _stage_update(self, instance: str) -> None:
        with self._update_lock:
            if instance in self.update_in_progress:
                raise StatusError(
                    Code.UNAVAILABLE, f"container {instance} is already being updated"
                )
            self.update_in_progress.add(instance)

    def _finish_update(self, instance: str) -> None:
        with self._update_lock:
            self.update_in_progress.discard(instance)

    def _json_state(self, instance: str, containers: Iterable[Container]) -> ContainerJSON:
        cnt_id = next(
            (cnt.id for cnt in containers if container_matches_instance(cnt, instance)), ""
        )
        if not cnt_id:
            raise StatusError(Code.NOT_FOUND, f"instance name {instance} not found")
        try:
            return self.client.container_inspect(cnt_id)
        except Exception as exc:
            raise StatusError(
                Code.UNKNOWN, f"failed to inspect container {cnt_id}: {exc}"
            ) from exc

    def _run_async_update(
        self,
        instance: str,
        image: str,
        tag: str,
        cmd: str,
        containers: list[Container],
        args: Sequence[Option],
        deadline: float,
    ) -> None:
        try:
            updated = self._perform_update(
                instance, image, tag, cmd, containers, args, deadline
            )
        except Exception as exc:  # noqa: BLE001 - nobody is left to report to
            logger.info("Async container update failed. Error is %s", exc)
            return
        logger.info("Async container update successful. Updated container is %r", updated)

    def _perform_update(
        self,
        instance: str,
        image: str,
        tag: str,
        cmd: str,
        containers: list[Container],
        args: Sequence[Option],
        deadline: float | None,
    ) -> str:
        try:
            old = self._json_state(instance, containers)

            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                self.container_stop(instance, *args, timeout=remaining)
            except Exception as exc:
                raise StatusError(
                    Code.INTERNAL, f"failed update of instance {instance} due to: {exc}"
                ) from exc
            try:
                self.client.container_remove(instance, force=False)
            except Exception as exc:
                raise StatusError(
                    Code.INTERNAL, f"failed update of instance {instance} due to: {exc}"
                ) from exc

            try:
                self.container_start(image, tag, cmd, *args, with_instance_name(instance))
            except Exception as exc:
                start_error = exc
            else:
                return instance

            err_pfx = f"failed to update instance {instance} due to: {start_error}"
            try:
                resp = self.client.container_create(old.config, old.host_config, instance)
            except Exception as exc:
                raise StatusError(
                    Code.INTERNAL,
                    f"{err_pfx}; restoration of previous state failed when creating container: {exc}",
                ) from exc
            try:
                self.client.container_start(resp.id)
            except Exception as exc:
                raise StatusError(
                    Code.INTERNAL,
                    f"{err_pfx}; restoration of previous state failed when starting container: {exc}",
                ) from exc
            raise StatusError(
                Code.INTERNAL, f"{err_pfx}; yet, restoration of previous state succeeded"
            ) from start_error
        finally:
            self._finish_update(instance)