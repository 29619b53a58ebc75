import io
import tarfile

import pytest

from containerz.docker.api import PluginInfo
from containerz.docker.plugins import PluginOperations
from containerz.messages import ListPluginsResponse, Plugin

JSON_CONFIG = """{
  "Args": {
    "Description": "",
    "Name": "",
    "Settable": null,
    "Value": null
  },
  "Description": "%s",
  "Documentation": "",
  "Entrypoint": null,
  "Env": null,
  "Interface": {
    "Socket": "",
    "Types": null
  },
  "IpcHost": false,
  "Linux": {
    "AllowAllDevices": false,
    "Capabilities": null,
    "Devices": null
  },
  "Mounts": null,
  "Network": {
    "Type": ""
  },
  "PidHost": false,
  "PropagatedMount": "",
  "User": {},
  "WorkDir": ""
}"""


def _config(description):
    return {
        "Args": {"Description": "", "Name": "", "Settable": None, "Value": None},
        "Description": description,
        "Documentation": "",
        "Entrypoint": None,
        "Env": None,
        "Interface": {"Socket": "", "Types": None},
        "IpcHost": False,
        "Linux": {"AllowAllDevices": False, "Capabilities": None, "Devices": None},
        "Mounts": None,
        "Network": {"Type": ""},
        "PidHost": False,
        "PropagatedMount": "",
        "User": {},
        "WorkDir": "",
    }


class FakePluginDocker:
    def __init__(self, plugins=(), fail_create=False):
        self.plugins = list(plugins)
        self.fail_create = fail_create
        self.removed = []
        self.disabled = []
        self.created = []
        self.enabled = []

    def plugin_list(self):
        return self.plugins

    def plugin_remove(self, name, force):
        self.removed.append((name, force))

    def plugin_disable(self, name, force):
        self.disabled.append((name, force))

    def plugin_create(self, context, repo_name):
        if self.fail_create:
            raise RuntimeError("boom")
        self.created.append((context.read(), repo_name))

    def plugin_enable(self, name):
        self.enabled.append(name)


PLUGIN1 = PluginInfo(id="plugin1", name="plugin1", config=_config("plugin1 config"))
PLUGIN2 = PluginInfo(id="plugin2", name="plugin2", config=_config("plugin2 config"))
WANT1 = Plugin(id="plugin1", instance_name="plugin1", config=JSON_CONFIG % "plugin1 config")
WANT2 = Plugin(id="plugin2", instance_name="plugin2", config=JSON_CONFIG % "plugin2 config")


@pytest.mark.parametrize(
    "plugins, instance, want",
    [
        pytest.param([], "", ListPluginsResponse(), id="no-plugins"),
        pytest.param([PLUGIN1], "", ListPluginsResponse(plugins=[WANT1]), id="one-plugin"),
        pytest.param(
            [PLUGIN1, PLUGIN2], "", ListPluginsResponse(plugins=[WANT1, WANT2]),
            id="multiple-plugins",
        ),
        pytest.param(
            [PLUGIN1, PLUGIN2], "plugin1", ListPluginsResponse(plugins=[WANT1]),
            id="multiple-plugins-filtered",
        ),
    ],
)
def test_plugin_list(plugins, instance, want):
    ops = PluginOperations(FakePluginDocker(plugins))
    assert ops.plugin_list(instance) == want


def test_plugin_list_matches_name_without_tag():
    tagged = PluginInfo(id="p", name="plugin1:latest", config={})
    other = PluginInfo(id="q", name="plugin10:latest", config={})
    ops = PluginOperations(FakePluginDocker([tagged, other]))
    assert ops.plugin_list("plugin1") == ListPluginsResponse(
        plugins=[Plugin(id="p", instance_name="plugin1:latest", config="{}")]
    )


def test_plugin_list_escapes_html_characters():
    plugin = PluginInfo(id="p", name="p", config={"Description": "a<b&c>"})
    ops = PluginOperations(FakePluginDocker([plugin]))
    got = ops.plugin_list("").plugins[0].config
    assert got == '{\n  "Description": "a\\u003cb\\u0026c\\u003e"\n}'


def test_plugin_remove():
    fake = FakePluginDocker()
    PluginOperations(fake).plugin_remove("some-instance")
    assert fake.removed == [("some-instance", True)]


def test_plugin_stop():
    fake = FakePluginDocker()
    PluginOperations(fake).plugin_stop("some-instance")
    assert fake.disabled == [("some-instance", True)]


def _write_plugin(directory, name, members):
    directory.mkdir(parents=True, exist_ok=True)
    with tarfile.open(directory / f"{name}.tar", "w") as tar:
        for member_name, data in members.items():
            info = tarfile.TarInfo(member_name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))


def test_plugin_start_valid(tmp_path):
    plugins = tmp_path / "plugins"
    staging = tmp_path / "staging"
    _write_plugin(plugins, "data", {"hello.txt": b"hi"})
    fake = FakePluginDocker()
    ops = PluginOperations(fake, plugin_location=str(plugins), staging_location=str(staging))

    ops.plugin_start("data", "test-instance", "test-config")

    assert fake.enabled == ["test-instance"]
    assert len(fake.created) == 1
    data, repo_name = fake.created[0]
    assert repo_name == "test-instance"
    with tarfile.open(fileobj=io.BytesIO(data)) as tar:
        names = set(tar.getnames())
        assert {"config.json", "rootfs", "rootfs/hello.txt"} <= names
        assert tar.extractfile("config.json").read() == b"test-config"
        assert tar.extractfile("rootfs/hello.txt").read() == b"hi"
    assert not staging.exists()


def test_plugin_start_missing_plugin(tmp_path):
    fake = FakePluginDocker()
    ops = PluginOperations(
        fake,
        plugin_location=str(tmp_path / "plugins"),
        staging_location=str(tmp_path / "staging"),
    )
    with pytest.raises(RuntimeError, match="failed to open plugin tar"):
        ops.plugin_start("no-such-plugin", "test-instance", "test-config")
    assert fake.created == []


def test_plugin_start_rejects_escaping_paths(tmp_path):
    plugins = tmp_path / "plugins"
    staging = tmp_path / "staging"
    _write_plugin(plugins, "evil", {"../../evil.txt": b"x"})
    fake = FakePluginDocker()
    ops = PluginOperations(fake, plugin_location=str(plugins), staging_location=str(staging))

    with pytest.raises(RuntimeError, match="failed to untar plugin"):
        ops.plugin_start("evil", "test-instance", "test-config")
    assert not (tmp_path / "evil.txt").exists()
    assert not staging.exists()


def test_plugin_start_create_failure(tmp_path):
    plugins = tmp_path / "plugins"
    _write_plugin(plugins, "data", {"hello.txt": b"hi"})
    fake = FakePluginDocker(fail_create=True)
    ops = PluginOperations(
        fake, plugin_location=str(plugins), staging_location=str(tmp_path / "staging")
    )

    with pytest.raises(RuntimeError, match="failed to create plugin: boom"):
        ops.plugin_start("data", "test-instance", "test-config")
    assert fake.enabled == []