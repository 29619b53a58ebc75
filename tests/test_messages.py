import pytest

from containerz.messages import (
    Capabilities,
    Code,
    DeployResponse,
    Device,
    ImageTransferProgress,
    ListPluginsResponse,
    Plugin,
    StatusError,
)


def test_status_error_description_format():
    err = StatusError(Code.INTERNAL, "instructed to fail during test")
    assert str(err) == "rpc error: code = Internal desc = instructed to fail during test"
    assert err.code is Code.INTERNAL
    assert err.message == "instructed to fail during test"


def test_status_error_nested_description():
    inner = StatusError(Code.INTERNAL, "instructed to fail during test")
    outer = StatusError(Code.INTERNAL, f"unable to create container: {inner}")
    assert str(outer) == (
        "rpc error: code = Internal desc = unable to create container: "
        "rpc error: code = Internal desc = instructed to fail during test"
    )


def test_convert_result_keeps_code_and_message():
    converted = StatusError.convert(
        StatusError(Code.NOT_FOUND, "image no-such-image:no-such-tag not found")
    )
    assert converted.code is Code.NOT_FOUND
    assert converted.message == "image no-such-image:no-such-tag not found"
    assert str(converted) == (
        "rpc error: code = NotFound desc = image no-such-image:no-such-tag not found"
    )


@pytest.mark.parametrize(
    "code, label",
    [
        (Code.OK, "OK"),
        (Code.INVALID_ARGUMENT, "InvalidArgument"),
        (Code.FAILED_PRECONDITION, "FailedPrecondition"),
    ],
)
def test_code_labels(code, label):
    assert code.label == label


def test_convert_keeps_status_errors():
    err = StatusError(Code.UNAVAILABLE, "port 1 already in use")
    assert StatusError.convert(err) is err


def test_convert_wraps_other_exceptions_as_unknown():
    converted = StatusError.convert(ValueError("bonito-flakes"))
    assert converted.code is Code.UNKNOWN
    assert converted.message == "bonito-flakes"


def test_list_defaults_are_not_shared():
    first, second = Device(), Device()
    first.permissions.append(1)
    assert second.permissions == []
    caps = Capabilities()
    caps.add.append("my-add-capability")
    assert Capabilities().add == []


def test_deploy_response_carries_progress():
    resp = DeployResponse(image_transfer_progress=ImageTransferProgress(bytes_received=10))
    assert resp == DeployResponse(ImageTransferProgress(10))
    assert DeployResponse().image_transfer_progress is None


def test_plugins_response_equality():
    resp = ListPluginsResponse(plugins=[Plugin(id="plugin1", instance_name="plugin1")])
    assert resp == ListPluginsResponse([Plugin("plugin1", "plugin1", "")])
    assert resp != ListPluginsResponse()