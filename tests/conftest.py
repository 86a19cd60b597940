"""Global test fixtures."""

import threading

import pytest

from hem.domain.hook.model.hook import HookRecord
from hem.domain.hook.model.result import CommandResult, ResultRecord
from hem.domain.hook.port.bus import BusMessage
from hem.domain.shared import wire


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """Keep host installs and variables out of config resolution."""
    for name in ("ONE_LOCATION", "ONE_AUTH", "HEM_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HEM_CONFIG_FILE", str(tmp_path / "missing-hem.conf"))
    monkeypatch.chdir(tmp_path)


def api_record(
    hook_id: int = 0,
    call: str = "one.vm.allocate",
    command: str = "/notify.sh",
    arguments: str | None = "$API",
    **template: str,
) -> HookRecord:
    values = {"CALL": call, "COMMAND": command, "REMOTE": "NO", **template}
    if arguments is not None:
        values["ARGUMENTS"] = arguments
    return HookRecord(id=hook_id, name=f"hook-{hook_id}", type="api", template=values)


def state_record(
    hook_id: int = 1,
    resource: str = "VM",
    state: str = "ACTIVE",
    lcm_state: str = "RUNNING",
    command: str = "vm_running.sh",
    arguments: str | None = "$TEMPLATE",
    **template: str,
) -> HookRecord:
    values = {
        "RESOURCE": resource,
        "STATE": state,
        "LCM_STATE": lcm_state,
        "COMMAND": command,
        "REMOTE": "NO",
        **template,
    }
    if arguments is not None:
        values["ARGUMENTS"] = arguments
    return HookRecord(id=hook_id, name=f"hook-{hook_id}", type="state", template=values)


API_EVENT = (
    "<HOOK_MESSAGE>"
    "<HOOK_TYPE>API</HOOK_TYPE>"
    "<CALL>one.vm.allocate</CALL>"
    "<CALL_INFO>"
    "<RESULT>1</RESULT>"
    "<PARAMETERS>"
    '<PARAMETER><POSITION>1</POSITION><TYPE>IN</TYPE><VALUE>oneadmin</VALUE></PARAMETER>'
    "</PARAMETERS>"
    "</CALL_INFO>"
    "</HOOK_MESSAGE>"
)

API_PARAMETERS = (
    "<PARAMETERS>"
    '<PARAMETER><POSITION>1</POSITION><TYPE>IN</TYPE><VALUE>oneadmin</VALUE></PARAMETER>'
    "</PARAMETERS>"
)

STATE_EVENT = (
    "<HOOK_MESSAGE>"
    "<HOOK_TYPE>STATE</HOOK_TYPE>"
    "<HOOK_OBJECT>VM</HOOK_OBJECT>"
    "<STATE>ACTIVE</STATE>"
    "<LCM_STATE>RUNNING</LCM_STATE>"
    "<RESOURCE_ID>7</RESOURCE_ID>"
    "<VM><ID>7</ID><NAME>web</NAME></VM>"
    "</HOOK_MESSAGE>"
)

VM_TEMPLATE = "<VM><ID>7</ID><NAME>web</NAME></VM>"


def message(topic: str, body: str) -> BusMessage:
    return BusMessage(topic=topic, payload=wire.encode(body))


class FakeHookSource:
    """Hook source returning a configurable list of records."""

    def __init__(self, records: list[HookRecord] | None = None) -> None:
        self.records = list(records or [])
        self.error: Exception | None = None
        self.calls = 0

    def hooks(self) -> list[HookRecord]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeSubscriber:
    """In-memory subscriber keeping a log of subscription calls."""

    def __init__(self, messages: list[BusMessage] | None = None) -> None:
        self.connected = False
        self.calls: list[tuple[str, str]] = []
        self.active: dict[str, int] = {}
        self._messages = list(messages or [])
        self._lock = threading.Lock()

    def connect(self) -> None:
        self.connected = True

    def subscribe(self, topic_filter: str) -> None:
        self.calls.append(("subscribe", topic_filter))
        self.active[topic_filter] = self.active.get(topic_filter, 0) + 1

    def unsubscribe(self, topic_filter: str) -> None:
        self.calls.append(("unsubscribe", topic_filter))
        self.active[topic_filter] -= 1
        if not self.active[topic_filter]:
            del self.active[topic_filter]

    def push(self, msg: BusMessage) -> None:
        with self._lock:
            self._messages.append(msg)

    def receive(self, timeout_ms: int | None = None) -> BusMessage | None:
        with self._lock:
            if self._messages:
                return self._messages.pop(0)
        threading.Event().wait((timeout_ms or 0) / 1000)
        return None


class RecordingRunner:
    """Command runner returning canned results and recording invocations."""

    def __init__(self, code: int = 0, stdout: str = "ok", stderr: str = "") -> None:
        self.code = code
        self.stdout = stdout
        self.stderr = stderr
        self.calls: list[tuple[str, str | None]] = []
        self._lock = threading.Lock()

    def run(self, command: str, host: str | None = None) -> CommandResult:
        with self._lock:
            self.calls.append((command, host))
        return CommandResult(command=command, code=self.code, stdout=self.stdout, stderr=self.stderr)


class RecordingReporter:
    def __init__(self, ack: bool = True) -> None:
        self.ack = ack
        self.records: list[ResultRecord] = []
        self._lock = threading.Lock()

    def report(self, record: ResultRecord) -> bool:
        with self._lock:
            self.records.append(record)
        return self.ack


@pytest.fixture
def hook_source() -> FakeHookSource:
    return FakeHookSource()


@pytest.fixture
def subscriber() -> FakeSubscriber:
    return FakeSubscriber()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()
