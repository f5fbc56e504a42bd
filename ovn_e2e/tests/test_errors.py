"""Tests for error rendering"""

from ovn_e2e.errors import (
    AddressResolutionTimeout,
    ExternalCommandError,
    HarnessError,
    ProbeFailure,
    TeardownError,
)


def test_error_names_step_target_and_cause():
    error = HarnessError("create workload", "ns/probe", "quota exceeded")
    assert str(error) == "create workload failed for ns/probe: quota exceeded"


def test_external_command_error_renders_argv():
    error = ExternalCommandError("exec in host", "gw", argv=["ip", "link", "set", "vxlan0", "up"],
                                 exit_code=1, output="Cannot find device\n")
    assert "'ip link set vxlan0 up' exited 1" in str(error)
    assert "Cannot find device" in str(error)
    assert error.exit_code == 1


def test_subclasses_share_the_base():
    assert isinstance(AddressResolutionTimeout("ns/dst", 20), HarnessError)
    assert ProbeFailure("ping check", "ns/src", logs="x").logs == "x"


def test_teardown_error_accumulates():
    failures = [HarnessError("remove host", "gw-a", "busy"), HarnessError("delete namespace", "ns", "gone")]
    error = TeardownError("ns", failures)
    assert error.failures == failures
    assert "2 cleanup step(s) failed" in str(error)
