"""Plugin operations: listing, installing, stopping and removing plugins."""

from __future__ import annotations

import io
import json
import os
import shutil
import tarfile
from typing import Any

from containerz.docker.api import DockerClient
from containerz.messages import ListPluginsResponse, Plugin

#: Where deployed plugin archives are expected to be.
PLUGIN_LOCATION = "/plugins"

#: Where plugins are unpacked before being handed to the engine.
STAGING_LOCATION = "/staging"

#: Directory the engine expects a plugin's root filesystem in.
ROOTFS_DIR = "rootfs"

_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _marshal_indent(value: Any) -> str:
    text = json.dumps(value, indent=2, ensure_ascii=False)
    for char, escaped in _ESCAPES.items():
        text = text.replace(char, escaped)
    return text


class _NoChownTarFile(tarfile.TarFile):
    """A tar reader that leaves file ownership alone when extracting."""

    def chown(self, tarinfo, targetpath, numeric_owner):  # noqa: D401
        return None


def _within(root: str, path: str) -> bool:
    return os.path.commonpath([root, path]) == root


def _check_members(tar: tarfile.TarFile, dest: str) -> None:
    root = os.path.realpath(dest)
    for member in tar.getmembers():
        target = os.path.realpath(os.path.join(root, member.name))
        if not _within(root, target):
            raise ValueError(f"invalid path {member.name!r} in archive")
        if member.issym():
            link = os.path.realpath(
                os.path.join(os.path.dirname(target), member.linkname)
            )
        elif member.islnk():
            link = os.path.realpath(os.path.join(root, member.linkname))
        else:
            continue
        if not _within(root, link):
            raise ValueError(f"invalid link {member.linkname!r} in archive")


def _untar(fileobj, dest: str) -> None:
    with _NoChownTarFile.open(fileobj=fileobj, mode="r:*") as tar:
        _check_members(tar, dest)
        if hasattr(tarfile, "fully_trusted_filter"):
            tar.extractall(dest, filter="fully_trusted")
        else:
            tar.extractall(dest)


def _tar_directory(path: str) -> io.BytesIO:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for entry in sorted(os.listdir(path)):
            tar.add(os.path.join(path, entry), arcname=entry)
    buf.seek(0)
    return buf


class PluginOperations:
    """Plugin operations against a container engine."""

    def __init__(
        self,
        client: DockerClient,
        plugin_location: str = PLUGIN_LOCATION,
        staging_location: str = STAGING_LOCATION,
    ) -> None:
        self.client = client
        self.plugin_location = plugin_location
        self.staging_location = staging_location

    def plugin_list(self, instance: str) -> ListPluginsResponse:
        """List plugins; with a non-empty ``instance`` only the plugin of that name."""
        try:
            plugins = self.client.plugin_list()
        except Exception as exc:
            raise RuntimeError(f"failed to list plugins: {exc}") from exc

        res = ListPluginsResponse()
        for plugin in plugins:
            # Engine names carry a tag; instance names do not.
            if instance and plugin.name.partition(":")[0] != instance:
                continue
            try:
                conf = _marshal_indent(plugin.config)
            except (TypeError, ValueError) as exc:
                raise RuntimeError(f"unable to marshal plugin config: {exc}") from exc
            res.plugins.append(Plugin(id=plugin.id, instance_name=plugin.name, config=conf))
        return res

    def plugin_remove(self, instance: str) -> None:
        """Remove the plugin named ``instance``."""
        self.client.plugin_remove(instance, force=True)

    def plugin_start(self, name: str, instance: str, config: str) -> None:
        """Install the deployed plugin archive ``name`` as ``instance`` and enable it.

        The archive is unpacked under a ``rootfs`` directory, the configuration is
        written next to it, and the result is packed again and given to the engine.
        """
        archive = os.path.join(self.plugin_location, f"{name}.tar")
        try:
            fp = open(archive, "rb")
        except OSError as exc:
            raise RuntimeError(f"failed to open plugin tar: {exc}") from exc

        with fp:
            extract_location = os.path.join(self.staging_location, name)
            rootfs = os.path.join(extract_location, ROOTFS_DIR)
            try:
                os.makedirs(rootfs, mode=0o755, exist_ok=True)
            except OSError as exc:
                raise RuntimeError(
                    f"failed to create plugin directory "
                    f"{os.path.join(self.plugin_location, name)}: {exc}"
                ) from exc

            try:
                try:
                    _untar(fp, rootfs)
                except (tarfile.TarError, OSError, ValueError) as exc:
                    raise RuntimeError(f"failed to untar plugin: {exc}") from exc

                try:
                    with open(
                        os.path.join(extract_location, "config.json"), "w", encoding="utf-8"
                    ) as out:
                        out.write(config)
                except OSError as exc:
                    raise RuntimeError(f"failed to write plugin config: {exc}") from exc

                try:
                    context = _tar_directory(extract_location)
                except (tarfile.TarError, OSError) as exc:
                    raise RuntimeError(f"failed to create plugin tar: {exc}") from exc

                try:
                    self.client.plugin_create(context, repo_name=instance)
                except Exception as exc:
                    raise RuntimeError(f"failed to create plugin: {exc}") from exc

                try:
                    self.client.plugin_enable(instance)
                except Exception as exc:
                    raise RuntimeError(f"failed to enable plugin: {exc}") from exc
            finally:
                shutil.rmtree(self.staging_location, ignore_errors=True)

    def plugin_stop(self, instance: str) -> None:
        """Disable the plugin named ``instance``."""
        self.client.plugin_disable(instance, force=True)