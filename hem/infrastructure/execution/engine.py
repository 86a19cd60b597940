"""Bounded-concurrency execution of hooks.

A fixed set of worker threads consumes work items from a bounded queue:

- at most ``concurrency`` hooks run at the same time;
- at most ``queue_size`` further items wait in the queue;
- ``submit`` blocks while the queue is full, which is the backpressure point
  on the receive loop.

Workers are daemon threads, so a hung hook never prevents the process from
exiting once ``shutdown`` gives up waiting for it.
"""

import logging
import threading
import time
from collections.abc import Callable
from queue import Full, Queue

from hem.domain.hook.model.result import (
    LAUNCH_FAILURE_CODE,
    CommandResult,
    ResultRecord,
    WorkItem,
)
from hem.domain.hook.port.command_runner import CommandRunner
from hem.domain.hook.port.reporter import ResultReporter
from hem.domain.shared.error import ReportTimeoutError

logger = logging.getLogger(__name__)

FatalHandler = Callable[[BaseException], None]


class ExecutionEngine:
    """Runs hooks for matched events and reports every result.

    Example:
        engine = ExecutionEngine(runner, reporter, "/var/lib/one/remotes/hooks", concurrency=10)
        engine.start()
        engine.submit(WorkItem(hook=hook, body=body))
        ...
        engine.shutdown(timeout=30)
    """

    def __init__(
        self,
        runner: CommandRunner,
        reporter: ResultReporter,
        hook_base_path: str,
        concurrency: int = 10,
        queue_size: int = 100,
        on_fatal: FatalHandler | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self._runner = runner
        self._reporter = reporter
        self._hook_base_path = hook_base_path
        self._concurrency = concurrency
        self._on_fatal = on_fatal

        self._queue: Queue[WorkItem | None] = Queue(maxsize=queue_size)
        self._workers: list[threading.Thread] = []
        self._stopping = threading.Event()

        # in_flight counts submitted items not yet completed (queued or running)
        self._state = threading.Condition()
        self._running = 0
        self._in_flight = 0

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def running(self) -> int:
        with self._state:
            return self._running

    @property
    def in_flight(self) -> int:
        with self._state:
            return self._in_flight

    def set_fatal_handler(self, handler: FatalHandler) -> None:
        self._on_fatal = handler

    def start(self) -> None:
        if self._workers:
            raise RuntimeError("Execution engine already started")

        for i in range(self._concurrency):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"hem-worker-{i}",
                daemon=True,
            )
            worker.start()
            self._workers.append(worker)

        logger.info(f"Execution engine started with {self._concurrency} workers")

    def submit(self, item: WorkItem) -> None:
        """Queue ``item`` for execution; blocks while the queue is full."""
        if self._stopping.is_set():
            raise RuntimeError("Execution engine is shutting down")

        with self._state:
            self._in_flight += 1
        self._queue.put(item)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait until every submitted item has been executed and reported."""
        with self._state:
            return self._state.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    def shutdown(self, timeout: float = 30.0) -> bool:
        """Stop accepting work and wait up to ``timeout`` seconds for the workers.

        Queued items still run if time allows. Returns False when workers were
        still busy at the deadline; they are abandoned.
        """
        self._stopping.set()
        deadline = time.monotonic() + timeout

        for _ in self._workers:
            try:
                self._queue.put(None, timeout=max(0.0, deadline - time.monotonic()))
            except Full:
                break

        for worker in self._workers:
            worker.join(max(0.0, deadline - time.monotonic()))

        busy = [w.name for w in self._workers if w.is_alive()]
        if busy:
            logger.warning(f"Shutdown timed out, abandoning busy workers: {', '.join(busy)}")
            return False

        logger.info("Execution engine stopped")
        return True

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                return
            self._process(item)

    def _process(self, item: WorkItem) -> None:
        with self._state:
            self._running += 1
        try:
            self.execute(item)
        except ReportTimeoutError as e:
            logger.critical(
                f"Cannot report result of hook {item.hook.id}: {e.message}", exc_info=True
            )
            if self._on_fatal is not None:
                self._on_fatal(e)
        except Exception:
            logger.exception(f"Unexpected error executing hook {item.hook.id}")
        finally:
            with self._state:
                self._running -= 1
                self._in_flight -= 1
                self._state.notify_all()

    def execute(self, item: WorkItem) -> ResultRecord:
        """Run one hook and report its result. Failed hooks are never retried."""
        hook = item.hook
        arguments = hook.arguments_for(item.body)
        command = hook.command_line(self._hook_base_path, arguments)
        host = hook.remote_host if hook.remote else None

        try:
            result = self._runner.run(command, host)
        except Exception as e:
            logger.exception(f"Command runner failed for hook {hook.id}")
            result = CommandResult(command=command, code=LAUNCH_FAILURE_CODE, stderr=str(e))

        if result.succeeded:
            logger.info(f"Hook successfully executed for {hook.key}")
        else:
            logger.error(f"Failure executing hook for {hook.key} (exit code {result.code})")

        record = ResultRecord(hook_id=hook.id, arguments=arguments, result=result)
        self._reporter.report(record)
        return record
