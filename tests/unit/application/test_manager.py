"""End-to-end behaviour of the Hook Execution Manager with in-memory collaborators."""

import threading
import time
from unittest.mock import MagicMock, patch

from conftest import (
    API_EVENT,
    API_PARAMETERS,
    STATE_EVENT,
    VM_TEMPLATE,
    FakeHookSource,
    FakeSubscriber,
    RecordingReporter,
    RecordingRunner,
    api_record,
    message,
    state_record,
)
from hem.application.manager import HookExecutionManager
from hem.config import Config
from hem.domain.hook.model.registry import HookRegistry
from hem.domain.hook.service.matcher import EventMatcher, Topic
from hem.domain.hook.service.subscription import STATIC_FILTERS, SubscriptionManager
from hem.domain.shared import wire
from hem.domain.shared.error import ReportTimeoutError
from hem.infrastructure.execution.engine import ExecutionEngine

BASE_PATH = "/var/lib/one/remotes/hooks"


class FakeRequester:
    def __init__(self) -> None:
        self.connected = False

    def connect(self) -> None:
        self.connected = True

    def request(self, message: str) -> str:
        return "ACK"


def _make_config(**overrides) -> Config:
    values = {"receive_poll_ms": 20, "shutdown_timeout": 5, "hook_base_path": BASE_PATH}
    values.update(overrides)
    return Config(**values)


def _make_manager(
    source: FakeHookSource,
    subscriber: FakeSubscriber | None = None,
    runner=None,
    reporter=None,
    engine=None,
) -> tuple[HookExecutionManager, ExecutionEngine]:
    registry = HookRegistry(source)
    subscriber = subscriber or FakeSubscriber()
    engine = engine or ExecutionEngine(
        runner=runner or RecordingRunner(),
        reporter=reporter or RecordingReporter(),
        hook_base_path=BASE_PATH,
        concurrency=2,
    )
    manager = HookExecutionManager(
        config=_make_config(),
        subscriber=subscriber,
        requester=FakeRequester(),
        subscriptions=SubscriptionManager(registry, subscriber),
        matcher=EventMatcher(registry),
        engine=engine,
    )
    return manager, engine


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestScenarios:
    def test_api_event_runs_hook_and_reports(self, runner, reporter):
        source = FakeHookSource([api_record(hook_id=5, command="/notify.sh", arguments="$API")])
        manager, engine = _make_manager(source, runner=runner, reporter=reporter)
        manager.subscriptions.initial_load()
        engine.start()

        manager.handle(message("API one.vm.allocate 1", API_EVENT))

        assert engine.wait_idle(timeout=5)
        assert runner.calls == [(f"/notify.sh {wire.encode(API_PARAMETERS)} ", None)]
        assert [r.hook_id for r in reporter.records] == [5]
        engine.shutdown(timeout=5)

    def test_state_event_embeds_object_template(self, runner, reporter):
        source = FakeHookSource([state_record(hook_id=2, command="vm_running.sh")])
        manager, engine = _make_manager(source, runner=runner, reporter=reporter)
        manager.subscriptions.initial_load()
        engine.start()

        manager.handle(message("STATE VM/ACTIVE/RUNNING", STATE_EVENT))

        assert engine.wait_idle(timeout=5)
        assert runner.calls == [
            (f"{BASE_PATH}/vm_running.sh {wire.encode(VM_TEMPLATE)} ", None)
        ]
        assert reporter.records[0].hook_id == 2
        engine.shutdown(timeout=5)

    def test_hook_allocate_reloads_after_dispatch(self):
        log: list[str] = []

        class LoggingSource(FakeHookSource):
            def hooks(self):
                log.append("load")
                return super().hooks()

        engine = MagicMock(spec=ExecutionEngine)
        engine.submit.side_effect = lambda item: log.append(f"submit {item.hook.id}")

        source = LoggingSource([api_record(hook_id=0, call="one.hook.allocate")])
        subscriber = FakeSubscriber()
        manager, _ = _make_manager(source, subscriber=subscriber, engine=engine)
        manager.subscriptions.initial_load()
        log.clear()

        source.records.append(api_record(hook_id=1, call="one.vm.allocate"))
        manager.handle(message("API one.hook.allocate 1", API_EVENT))

        assert log == ["submit 0", "load"]
        assert "API one.vm.allocate 1" in subscriber.active
        assert set(STATIC_FILTERS) <= set(subscriber.active)

    def test_hook_delete_without_hook_still_reloads(self, runner, reporter):
        source = FakeHookSource([api_record(hook_id=0)])
        subscriber = FakeSubscriber()
        manager, engine = _make_manager(source, subscriber, runner, reporter)
        manager.subscriptions.initial_load()
        engine.start()

        source.records.clear()
        manager.handle(message("API one.hook.delete 1", API_EVENT))

        assert engine.wait_idle(timeout=5)
        assert runner.calls == []
        assert "API one.vm.allocate 1" not in subscriber.active
        assert set(subscriber.active) == set(STATIC_FILTERS)
        engine.shutdown(timeout=5)

    def test_unmatched_topic_is_ignored(self, runner, reporter):
        source = FakeHookSource([api_record(hook_id=0, call="one.vm.allocate")])
        manager, engine = _make_manager(source, runner=runner, reporter=reporter)
        manager.subscriptions.initial_load()
        engine.start()

        manager.handle(message("API one.image.delete 1", API_EVENT))
        manager.handle(message("STATE HOST/ERROR/LCM_INIT", STATE_EVENT))

        assert engine.wait_idle(timeout=5)
        assert runner.calls == []
        assert reporter.records == []
        engine.shutdown(timeout=5)

    def test_malformed_topic_is_ignored(self, runner):
        source = FakeHookSource([api_record()])
        manager, engine = _make_manager(source, runner=runner)
        manager.subscriptions.initial_load()
        engine.start()

        manager.handle(message("API", API_EVENT))

        assert engine.wait_idle(timeout=5)
        assert runner.calls == []
        engine.shutdown(timeout=5)

    def test_topic_is_parsed_once_per_message(self, runner):
        source = FakeHookSource([api_record()])
        manager, engine = _make_manager(source, runner=runner)
        manager.subscriptions.initial_load()
        engine.start()

        with patch.object(Topic, "parse", wraps=Topic.parse) as parse:
            manager.handle(message("API one.vm.allocate 1", API_EVENT))

        assert engine.wait_idle(timeout=5)
        assert parse.call_count == 1
        assert len(runner.calls) == 1
        engine.shutdown(timeout=5)

    def test_failed_hook_is_reported_with_exit_code(self, reporter):
        runner = RecordingRunner(code=7, stdout="partial", stderr="failed")
        source = FakeHookSource([api_record(hook_id=3)])
        manager, engine = _make_manager(source, runner=runner, reporter=reporter)
        manager.subscriptions.initial_load()
        engine.start()

        manager.handle(message("API one.vm.allocate 1", API_EVENT))

        assert engine.wait_idle(timeout=5)
        assert len(runner.calls) == 1
        [record] = reporter.records
        assert record.exit_code == 7
        assert record.result.stdout == "partial"
        assert record.result.stderr == "failed"
        engine.shutdown(timeout=5)


class TestReceiveLoop:
    def test_loop_subscribes_and_dispatches(self, runner, reporter):
        source = FakeHookSource([api_record(hook_id=4)])
        subscriber = FakeSubscriber([message("API one.vm.allocate 1", API_EVENT)])
        manager, _ = _make_manager(source, subscriber, runner, reporter)

        manager.start()
        try:
            assert manager.wait_ready(timeout=5)
            assert subscriber.connected
            assert _wait_for(lambda: len(reporter.records) == 1)
        finally:
            manager.stop()
            assert manager.shutdown() is True

        assert reporter.records[0].hook_id == 4
        assert "API one.vm.allocate 1" in subscriber.active

    def test_handler_error_does_not_stop_loop(self, reporter):
        source = FakeHookSource([api_record(hook_id=4)])
        subscriber = FakeSubscriber()
        manager, _ = _make_manager(source, subscriber, reporter=reporter)
        original = manager.handle
        calls = []

        def flaky(msg):
            calls.append(msg)
            if len(calls) == 1:
                raise RuntimeError("boom")
            original(msg)

        manager.handle = flaky
        manager.start()
        try:
            assert manager.wait_ready(timeout=5)
            subscriber.push(message("API one.vm.allocate 1", API_EVENT))
            subscriber.push(message("API one.vm.allocate 1", API_EVENT))
            assert _wait_for(lambda: len(reporter.records) == 1)
        finally:
            manager.shutdown()

        assert manager.fatal_error is None

    def test_report_timeout_stops_manager(self, runner):
        class TimingOutReporter:
            def report(self, record):
                raise ReportTimeoutError("no reply from oned")

        source = FakeHookSource([api_record(hook_id=4)])
        subscriber = FakeSubscriber([message("API one.vm.allocate 1", API_EVENT)])
        manager, _ = _make_manager(source, subscriber, runner, TimingOutReporter())

        result = {}
        thread = threading.Thread(target=lambda: result.setdefault("ok", manager.run()))
        thread.start()
        thread.join(10)

        assert not thread.is_alive()
        assert result["ok"] is False
        assert isinstance(manager.fatal_error, ReportTimeoutError)

    def test_connect_failure_is_fatal(self):
        class BrokenSubscriber(FakeSubscriber):
            def connect(self):
                raise OSError("cannot connect")

        manager, _ = _make_manager(FakeHookSource(), BrokenSubscriber())

        manager.start()
        assert manager.wait(timeout=5)
        manager.shutdown()

        assert isinstance(manager.fatal_error, OSError)
        assert not manager.wait_ready(timeout=0)
