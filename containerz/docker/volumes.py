"""Volume operations: creating, listing and removing volumes."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from containerz.docker.api import DockerClient, VolumeCreateOptions
from containerz.messages import (
    Code,
    CustomOptions,
    Driver,
    ListVolumeResponse,
    LocalDriverOptions,
    LocalDriverType,
    StatusError,
)
from containerz.options import ListVolumeStreamer, Option, apply_options

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))$"
)


def _parse_rfc3339(value: str) -> datetime:
    match = _RFC3339.match(value)
    if match is None:
        raise ValueError(f"unable to parse creation time: {value!r} is not RFC 3339")
    year, month, day, hour, minute, second, frac, zulu, sign, tzh, tzm = match.groups()
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(tzh), minutes=int(tzm))
        tz = timezone(-offset if sign == "-" else offset)
    micro = int((frac or "0")[:6].ljust(6, "0"))
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second),
            micro, tzinfo=tz,
        )
    except ValueError as exc:
        raise ValueError(f"unable to parse creation time: {exc}") from exc


class VolumeOperations:
    """Volume operations against a container engine."""

    def __init__(self, client: DockerClient) -> None:
        self.client = client

    def volume_create(self, name: str, driver: Driver, *args: Option) -> str:
        """Create a volume and return its name, generated by the engine if empty."""
        optionz = apply_options(*args)
        kind = "local"
        vol_opts: dict[str, str] = {}
        driver_opts = optionz.volume_driver_options

        if driver in (Driver.UNSPECIFIED, Driver.LOCAL):
            if driver_opts is not None:
                if not isinstance(driver_opts, LocalDriverOptions):
                    raise StatusError(
                        Code.INVALID_ARGUMENT,
                        "driver is marked as local but options are not LocalDriverOptions",
                    )
                if driver_opts.type in (LocalDriverType.UNSPECIFIED, LocalDriverType.NONE):
                    vol_opts["type"] = "none"
                vol_opts["o"] = ",".join(driver_opts.options)
                vol_opts["device"] = driver_opts.mountpoint
        elif driver == Driver.CUSTOM:
            kind = "custom:latest"
            if driver_opts is not None:
                if not isinstance(driver_opts, CustomOptions):
                    raise StatusError(
                        Code.INVALID_ARGUMENT,
                        "driver is marked as custom but options are not CustomOptions",
                    )
                vol_opts = dict(driver_opts.options)

        created = self.client.volume_create(
            VolumeCreateOptions(
                name=name,
                driver=kind,
                labels=optionz.volume_labels,
                driver_opts=vol_opts,
            )
        )
        return created.name

    def volume_list(self, srv: ListVolumeStreamer, *args: Option) -> None:
        """Send every volume matching the filter to ``srv``."""
        optionz = apply_options(*args)
        volumes = self.client.volume_list(list(optionz.filter_pairs()))
        for vol in volumes:
            created = _parse_rfc3339(vol.created_at)
            try:
                srv.send(
                    ListVolumeResponse(
                        name=vol.name,
                        created=created,
                        driver=vol.driver,
                        options=dict(vol.options or {}),
                        labels=dict(vol.labels or {}),
                    )
                )
            except EOFError:
                return

    def volume_remove(self, name: str, *args: Option) -> None:
        """Remove a volume, forcibly when the force option is set."""
        optionz = apply_options(*args)
        self.client.volume_remove(name, optionz.force)