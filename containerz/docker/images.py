"""Image operations: listing, pulling, loading and removing images."""

from __future__ import annotations

import codecs
import json
from collections.abc import Iterator
from typing import IO, Any

from containerz.docker.api import (
    Container,
    ContainerListOptions,
    DockerClient,
    ImageListOptions,
    ImageSummary,
)
from containerz.messages import (
    Code,
    Credentials,
    DeployResponse,
    ImageTransferProgress,
    ListImageResponse,
    StatusError,
)
from containerz.options import ListImageStreamer, Option, Stream, apply_options

_CHUNK = 4096


def find_image(ref: str, summaries: list[ImageSummary]) -> None:
    """Raise NOT_FOUND unless some image carries the tag ``ref``."""
    if any(ref in summary.repo_tags for summary in summaries):
        return
    raise StatusError(Code.NOT_FOUND, f"image {ref} not found")


def image_to_response(image: ImageSummary) -> ListImageResponse:
    """Describe an image by its name and its comma-joined tags."""
    name = ""
    tags: list[str] = []
    for repo_tag in image.repo_tags:
        repo, sep, tag = repo_tag.partition(":")
        if not name:
            name = repo
        if sep:
            tags.append(tag)
    return ListImageResponse(id=image.id, image_name=name, tag=",".join(tags))


def extract_image_name_from_stream(stream: str) -> str:
    """Return the ``name:tag`` reported by an image load message."""
    if not stream:
        return ""
    return stream.replace("Loaded image: ", "", 1).strip("\n")


def _iter_json_values(fp: IO[bytes]) -> Iterator[Any]:
    """Yield each JSON value from a stream of concatenated JSON documents."""
    decoder = json.JSONDecoder()
    text_decoder = codecs.getincrementaldecoder("utf-8")()
    buf = ""
    eof = False
    while True:
        buf = buf.lstrip()
        if buf:
            try:
                value, end = decoder.raw_decode(buf)
            except json.JSONDecodeError:
                if eof:
                    raise
            else:
                if end < len(buf) or eof or isinstance(value, (dict, list, str)):
                    yield value
                    buf = buf[end:]
                    continue
        elif eof:
            return
        chunk = fp.read(_CHUNK)
        if chunk:
            buf += text_decoder.decode(chunk)
        else:
            buf += text_decoder.decode(b"", final=True)
            eof = True


def _iter_json_messages(fp: IO[bytes]) -> Iterator[dict[str, Any]]:
    for value in _iter_json_values(fp):
        if not isinstance(value, dict):
            raise ValueError(f"unexpected JSON message {value!r}")
        yield value


def _stream_output(srv: Stream, resp: IO[bytes]) -> None:
    for message in _iter_json_messages(resp):
        progress = message.get("progressDetail")
        if not isinstance(progress, dict):
            continue
        current = progress.get("current", 0)
        if not current:
            continue
        srv.send(
            DeployResponse(
                image_transfer_progress=ImageTransferProgress(bytes_received=int(current))
            )
        )


def _registry_login(creds: Credentials | None) -> str:
    if creds is None:
        return ""
    raise StatusError(Code.UNIMPLEMENTED, "registry auth not yet implemented")


def _image_in_use(ref: str, containers: list[Container]) -> bool:
    return any(c.image == ref for c in containers)


class ImageOperations:
    """Image operations against a container engine."""

    def __init__(self, client: DockerClient) -> None:
        self.client = client

    def image_list(
        self, all_: bool, limit: int, srv: ListImageStreamer, *args: Option
    ) -> None:
        """Send every image, at most ``limit`` of them when positive, to ``srv``."""
        optionz = apply_options(*args)
        list_opts = ImageListOptions(show_all=all_, filters=list(optionz.filter_pairs()))
        images = self.client.image_list(list_opts)
        if 0 < limit < len(images):
            images = images[:limit]
        for image in images:
            try:
                srv.send(image_to_response(image))
            except EOFError:
                return

    def image_pull(self, image_name: str, tag: str, *args: Option) -> None:
        """Pull ``image_name:tag``, optionally streaming progress and retagging."""
        if not image_name:
            raise StatusError(Code.INVALID_ARGUMENT, "an image name must be supplied.")
        tag = tag or "latest"
        optionz = apply_options(*args)
        auth = _registry_login(optionz.credentials)
        ref = f"{image_name}:{tag}"
        try:
            resp = self.client.image_pull(ref, registry_auth=auth)
        except Exception as exc:
            raise StatusError(Code.INTERNAL, f"unable to pull container: {exc}") from exc

        with resp:
            if optionz.stream_client is not None:
                _stream_output(optionz.stream_client, resp)

            if optionz.target_name and optionz.target_tag:
                target = f"{optionz.target_name}:{optionz.target_tag}"
                try:
                    self.client.image_tag(ref, target)
                except Exception as exc:
                    raise StatusError(
                        Code.INTERNAL, f"unable to tag container: {exc}"
                    ) from exc

    def image_push(self, file: IO[bytes] | None, *args: Option) -> tuple[str, str]:
        """Load an image archive and return its (name, tag), retagged if asked."""
        if file is None:
            raise StatusError(Code.INVALID_ARGUMENT, "file must be supplied")
        optionz = apply_options(*args)
        try:
            resp = self.client.image_load(file, quiet=True)
        except Exception as exc:
            raise StatusError(Code.INTERNAL, f"unable to load image: {exc}") from exc

        body = resp.body
        if body is None:
            return optionz.target_name, optionz.target_tag

        with body:
            if not resp.json:
                return optionz.target_name, optionz.target_tag
            try:
                message = next(_iter_json_messages(body), None)
            except Exception as exc:
                raise StatusError.convert(exc) from exc
            if message is None:
                raise StatusError(Code.UNKNOWN, "EOF")

        name_and_tag = extract_image_name_from_stream(message.get("stream", "") or "")
        if optionz.target_name and name_and_tag:
            target = f"{optionz.target_name}:{optionz.target_tag}"
            try:
                self.client.image_tag(name_and_tag, target)
            except Exception as exc:
                raise StatusError.convert(exc) from exc
            return optionz.target_name, optionz.target_tag

        name, sep, tag = name_and_tag.partition(":")
        if not sep:
            raise StatusError(
                Code.INTERNAL, f"unable to determine image name and tag from {name_and_tag!r}"
            )
        return name, tag

    def image_remove(self, image_name: str, tag: str, *args: Option) -> None:
        """Remove ``image_name:tag`` unless a container uses it and force is unset."""
        optionz = apply_options(*args)
        images = self.client.image_list(ImageListOptions())
        ref = f"{image_name}:{tag}"
        find_image(ref, images)

        containers = self.client.container_list(ContainerListOptions())
        if _image_in_use(ref, containers):
            if optionz.force:
                self.client.image_remove(ref, force=True)
                return
            raise StatusError(
                Code.UNAVAILABLE,
                f"image {ref} has a running container; use force to override",
            )
        self.client.image_remove(ref, force=False)