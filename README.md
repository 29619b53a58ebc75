# containerz

Container lifecycle operations (images, containers, volumes and plugins)
built on top of an engine client that you supply.

## What it does

`containerz.docker.manager.Manager` wraps any object that implements the
`containerz.docker.api.DockerClient` protocol. It checks its inputs before it
calls the engine and raises clear errors:

- **Images** (`containerz.docker.images.ImageOperations`): `image_list` with
  filters and an optional limit, `image_pull` with optional re-tagging and
  progress streaming, `image_push` to load an image archive from an open binary
  file and return its `(name, tag)`, and `image_remove`, which refuses while a
  container uses the image unless the `force()` option is given.
- **Containers** (`containerz.docker.containers.ContainerOperations`):
  `container_list`, `container_logs`, `container_start` (ports, environment,
  volumes, devices, capabilities, restart policy, run-as user, network, labels,
  CPU and memory limits), `container_stop` (with or without forced
  termination, bounded by an optional `timeout` in seconds) and
  `container_remove`.
- **Updates** (`containerz.docker.update.UpdateOperations`): `container_update`
  replaces a container with one built from another image. If the new container
  cannot be started, the previous configuration is recreated and started and
  an error is still raised. With `async_=True` the checks run first, the
  update runs in a background thread, and the instance name is returned at
  once. Only one update per instance can run at a time.
- **Volumes** (`containerz.docker.volumes.VolumeOperations`): `volume_create`
  with the local or a custom driver, `volume_list` and `volume_remove`.
- **Plugins** (`containerz.docker.plugins.PluginOperations`): `plugin_list`,
  `plugin_start` (unpacks `<plugin_location>/<name>.tar` under a `rootfs`
  directory in a staging area, writes `config.json` next to it, and hands the
  repacked archive to the engine), `plugin_stop` and `plugin_remove`.

While the manager is started, a background janitor
(`containerz.docker.janitor.Vacuum`) prunes stopped containers and dangling
images once per interval (24 hours by default).

Most failures are raised as `containerz.messages.StatusError`, which carries a
`containerz.messages.Code` such as `NOT_FOUND`, `ALREADY_EXISTS`,
`FAILED_PRECONDITION` or `UNAVAILABLE`. Plugin operations raise `RuntimeError`,
and an over-precise CPU limit raises `ValueError`.

## Installation

```
pip install .
```

To run the test suite, install the test extra and run pytest:

```
pip install ".[test]"
pytest
```

## Usage

```python
from containerz.docker.manager import Manager
from containerz.options import force, with_env, with_instance_name, with_ports

# client implements containerz.docker.api.DockerClient
with Manager(client) as manager:
    name = manager.container_start(
        "my-image", "my-tag", "sleep 1000",
        with_instance_name("my-container"),
        with_ports({8080: 80}),
        with_env({"MODE": "production"}),
    )
    manager.container_stop("my-container", force(), timeout=30)
```

Leaving the `with` block stops the janitor and closes the client. You can also
call `manager.start()` and `manager.stop()` yourself. `Manager` accepts the
keyword arguments `janitor_interval`, `plugin_location` (default `/plugins`)
and `staging_location` (default `/staging`).

Options are plain callables made by the `with_*` helpers, `force()` and
`follow()` in `containerz.options`. `apply_options` combines them into a
`containerz.options.Options`. Streaming operations (`container_list`,
`image_list`, `volume_list`, `container_logs`, and `image_pull` with
`with_stream`) take a receiver with a `send(message)` method. The messages are
the dataclasses in `containerz.messages`. A receiver may raise `EOFError` to
end a listing early.

## What it does not do

- It ships no engine client. You provide an object that implements
  `containerz.docker.api.DockerClient` and talks to your container runtime.
- It has no command-line tool and no network service. It is a library to call
  from your own code.
- Registry authentication is not supported. Passing `with_registry_auth(...)`
  to `image_pull` raises `StatusError` with `Code.UNIMPLEMENTED`.