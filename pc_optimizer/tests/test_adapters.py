"""Tests for host adapters: value codec, simulated backends, sc.exe and subprocess."""

import sys
import threading
import time

import pytest

from pc_optimizer.adapters.base import (
    CommandResult,
    CommandRunner,
    ServiceController,
    ServiceStatus,
    StartupMode,
    decode_value,
    encode_value,
)
from pc_optimizer.adapters.command import SubprocessCommandRunner
from pc_optimizer.adapters.registry import split_hive
from pc_optimizer.adapters.service import ScServiceController, ServiceConfig
from pc_optimizer.adapters.simulated import (
    DEFAULT_SERVICES,
    DryRunCommandRunner,
    SimulatedConfigStore,
    SimulatedServiceController,
)
from pc_optimizer.protocol.errors import (
    AdapterError,
    AdapterTimeoutError,
    CommandCancelledError,
    CommandTimeoutError,
    NotFoundError,
    PermissionDeniedError,
    ServiceNotFoundError,
)

PATH = r"HKEY_LOCAL_MACHINE\SOFTWARE\PcOptimizerTest"

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX process groups")


class ScriptedRunner(CommandRunner):
    """Answers sc.exe calls from a table keyed by the sub-command."""

    def __init__(self, responses):
        self.responses = {k: list(v) for k, v in responses.items()}
        self.calls = []
        self.cancels = []

    def run(self, executable, args, timeout, cancel=None):
        self.calls.append(tuple(args))
        self.cancels.append(cancel)
        queue = self.responses[args[0]]
        return queue.pop(0) if len(queue) > 1 else queue[0]


def _query(state):
    return CommandResult(
        exit_code=0,
        stdout=(
            "SERVICE_NAME: SysMain\n"
            "        TYPE               : 30  WIN32\n"
            f"        STATE              : {state}\n"
        ),
    )


def _qc(start_type):
    return CommandResult(
        exit_code=0,
        stdout=(
            "[SC] QueryServiceConfig SUCCESS\n\n"
            "SERVICE_NAME: SysMain\n"
            f"        START_TYPE         : {start_type}\n"
        ),
    )


# =========================================================================
# Value encoding
# =========================================================================

@pytest.mark.parametrize("value,encoded", [
    (1, {"type": "int", "value": 1}),
    (True, {"type": "int", "value": 1}),
    ("Deny", {"type": "str", "value": "Deny"}),
    (b"\x9e\x1e", {"type": "bytes", "value": "nh4="}),
    (None, None),
])
def test_encode_value(value, encoded):
    assert encode_value(value) == encoded


def test_decode_value_restores_type():
    assert decode_value({"type": "bytes", "value": "nh4="}) == b"\x9e\x1e"
    assert decode_value({"type": "int", "value": 4294967295}) == 0xFFFFFFFF


def test_encode_rejects_unsupported_type():
    with pytest.raises(TypeError):
        encode_value(1.5)


def test_decode_rejects_unknown_type():
    with pytest.raises(ValueError):
        decode_value({"type": "float", "value": 1.5})


# =========================================================================
# Simulated backends
# =========================================================================

def test_simulated_store_is_case_insensitive():
    store = SimulatedConfigStore()
    store.set(PATH, "Value", 1)

    assert store.get(PATH.upper(), "value") == 1
    store.delete(PATH.lower(), "VALUE")
    assert store.get(PATH, "Value") is None


def test_simulated_delete_absent_is_not_an_error():
    SimulatedConfigStore().delete(PATH, "Missing")


def test_simulated_store_persists(tmp_path):
    state = tmp_path / "state" / "config_store.json"
    store = SimulatedConfigStore(state_file=state)
    store.set(PATH, "Blob", b"\x00\xff")
    store.set(PATH, "Text", "hello")

    reopened = SimulatedConfigStore(state_file=state)

    assert reopened.get(PATH, "Blob") == b"\x00\xff"
    assert reopened.get(PATH, "Text") == "hello"


def test_simulated_services_persist(tmp_path):
    state = tmp_path / "services.json"
    services = SimulatedServiceController(state_file=state, services=DEFAULT_SERVICES)
    services.set_startup_mode("SysMain", StartupMode.DISABLED)
    services.stop("SysMain", 1.0)

    reopened = SimulatedServiceController(state_file=state)

    assert reopened.get_startup_mode("sysmain") == StartupMode.DISABLED
    assert reopened.get_status("SysMain") == ServiceStatus.STOPPED


def test_simulated_unknown_service_raises():
    services = SimulatedServiceController(services={})
    with pytest.raises(ServiceNotFoundError):
        services.get_startup_mode("NoSuchService")


def test_dry_run_records_invocations():
    runner = DryRunCommandRunner()
    result = runner.run("powercfg", ["/setactive", "x"], 10)

    assert result.ok
    assert runner.invocations == [("powercfg", ("/setactive", "x"))]


# =========================================================================
# sc.exe service controller
# =========================================================================

@pytest.mark.parametrize("state,expected", [
    ("4  RUNNING", ServiceStatus.RUNNING),
    ("1  STOPPED", ServiceStatus.STOPPED),
    ("3  STOP_PENDING", ServiceStatus.UNKNOWN),
])
def test_sc_status(state, expected):
    controller = ScServiceController(ScriptedRunner({"query": [_query(state)]}))
    assert controller.get_status("SysMain") == expected


@pytest.mark.parametrize("start_type,expected", [
    ("2   AUTO_START", StartupMode.AUTOMATIC),
    ("2   AUTO_START  (DELAYED)", StartupMode.AUTOMATIC),
    ("3   DEMAND_START", StartupMode.MANUAL),
    ("4   DISABLED", StartupMode.DISABLED),
])
def test_sc_startup_mode(start_type, expected):
    controller = ScServiceController(ScriptedRunner({"qc": [_qc(start_type)]}))
    assert controller.get_startup_mode("SysMain") == expected


def test_sc_unrecognised_start_type():
    controller = ScServiceController(ScriptedRunner({"qc": [_qc("0   BOOT_START")]}))
    with pytest.raises(AdapterError, match="Unrecognised"):
        controller.get_startup_mode("SysMain")


def test_sc_set_startup_mode_arguments():
    runner = ScriptedRunner({"config": [CommandResult(exit_code=0, stdout="[SC] ChangeServiceConfig SUCCESS")]})
    ScServiceController(runner).set_startup_mode("SysMain", StartupMode.MANUAL)
    assert runner.calls == [("config", "SysMain", "start=", "demand")]


def test_sc_access_denied():
    runner = ScriptedRunner({"config": [CommandResult(exit_code=5, stdout="[SC] OpenService FAILED 5:")]})
    with pytest.raises(PermissionDeniedError):
        ScServiceController(runner).set_startup_mode("SysMain", StartupMode.DISABLED)


def test_sc_missing_service():
    runner = ScriptedRunner({"qc": [CommandResult(exit_code=1060, stdout="[SC] OpenService FAILED 1060:")]})
    with pytest.raises(ServiceNotFoundError):
        ScServiceController(runner).get_startup_mode("NoSuchService")


def test_sc_failure_code_in_output():
    runner = ScriptedRunner({"qc": [CommandResult(exit_code=0, stdout="[SC] OpenService FAILED 1060:")]})
    with pytest.raises(ServiceNotFoundError):
        ScServiceController(runner).get_startup_mode("NoSuchService")


def test_sc_stop_polls_until_stopped():
    runner = ScriptedRunner({
        "stop": [CommandResult(exit_code=0)],
        "query": [_query("3  STOP_PENDING"), _query("1  STOPPED")],
    })
    controller = ScServiceController(runner, ServiceConfig(probe_interval=0))

    controller.stop("SysMain", 5.0)

    assert [c[0] for c in runner.calls] == ["stop", "query", "query"]


def test_sc_stop_not_active_is_accepted():
    runner = ScriptedRunner({
        "stop": [CommandResult(exit_code=1062)],
        "query": [_query("1  STOPPED")],
    })
    ScServiceController(runner, ServiceConfig(probe_interval=0)).stop("SysMain", 5.0)


def test_sc_stop_times_out():
    runner = ScriptedRunner({
        "stop": [CommandResult(exit_code=0)],
        "query": [_query("3  STOP_PENDING")],
    })
    controller = ScServiceController(runner, ServiceConfig(probe_interval=0.01))

    with pytest.raises(AdapterTimeoutError):
        controller.stop("SysMain", 0.1)


def test_sc_calls_forward_cancel_event():
    runner = ScriptedRunner({
        "stop": [CommandResult(exit_code=0)],
        "query": [_query("1  STOPPED")],
        "config": [CommandResult(exit_code=0)],
    })
    controller = ScServiceController(runner, ServiceConfig(probe_interval=0))
    cancel = threading.Event()

    controller.stop("SysMain", 5.0, cancel)
    controller.set_startup_mode("SysMain", StartupMode.DISABLED, cancel)

    assert runner.cancels == [cancel, cancel, cancel]


def test_sc_stop_abandons_wait_when_cancelled():
    runner = ScriptedRunner({
        "stop": [CommandResult(exit_code=0)],
        "query": [_query("3  STOP_PENDING")],
    })
    controller = ScServiceController(runner, ServiceConfig(probe_interval=0.05))
    cancel = threading.Event()
    timer = threading.Timer(0.2, cancel.set)
    timer.start()

    started = time.monotonic()
    try:
        with pytest.raises(CommandCancelledError):
            controller.stop("SysMain", 30.0, cancel)
    finally:
        timer.cancel()

    assert time.monotonic() - started < 5.0


def test_incomplete_service_controller_cannot_be_instantiated():
    class StatusOnly(ServiceController):
        def get_status(self, name, cancel=None):
            return ServiceStatus.RUNNING

    with pytest.raises(TypeError):
        StatusOnly()


# =========================================================================
# Subprocess runner
# =========================================================================

@posix_only
def test_subprocess_success():
    runner = SubprocessCommandRunner(kill_grace=2.0, poll_interval=0.05)
    result = runner.run(sys.executable, ["-c", "print('hello')"], 10)

    assert result.ok
    assert result.stdout.strip() == "hello"


@posix_only
def test_subprocess_non_zero_exit_is_returned():
    runner = SubprocessCommandRunner(kill_grace=2.0, poll_interval=0.05)
    result = runner.run(sys.executable, ["-c", "import sys; sys.exit(3)"], 10)

    assert result.exit_code == 3
    assert not result.ok


@posix_only
def test_subprocess_timeout_kills_child():
    runner = SubprocessCommandRunner(kill_grace=2.0, poll_interval=0.05)
    started = time.monotonic()

    with pytest.raises(CommandTimeoutError) as exc_info:
        runner.run(sys.executable, ["-c", "import time; time.sleep(30)"], 0.3)

    assert time.monotonic() - started < 5
    assert exc_info.value.timeout == 0.3


@posix_only
def test_subprocess_cancel():
    runner = SubprocessCommandRunner(kill_grace=2.0, poll_interval=0.05)
    cancel = threading.Event()
    timer = threading.Timer(0.2, cancel.set)
    timer.start()
    try:
        with pytest.raises(CommandCancelledError):
            runner.run(sys.executable, ["-c", "import time; time.sleep(30)"], 30, cancel=cancel)
    finally:
        timer.cancel()


def test_subprocess_missing_executable():
    runner = SubprocessCommandRunner()
    with pytest.raises(NotFoundError):
        runner.run("definitely-not-a-real-utility-7f3a", [], 5)


# =========================================================================
# Registry paths
# =========================================================================

@pytest.mark.parametrize("path,expected", [
    (r"HKEY_LOCAL_MACHINE\SYSTEM\X", ("HKEY_LOCAL_MACHINE", r"SYSTEM\X")),
    (r"HKLM\SYSTEM\X", ("HKEY_LOCAL_MACHINE", r"SYSTEM\X")),
    (r"hkcu\Control Panel\Mouse", ("HKEY_CURRENT_USER", r"Control Panel\Mouse")),
])
def test_split_hive(path, expected):
    assert split_hive(path) == expected


def test_split_hive_unknown():
    with pytest.raises(ValueError):
        split_hive(r"HKEY_BOGUS\X")
