"""Hook Execution Manager: the receive loop tying the bus to the execution engine."""

import logging
import threading

from hem.config import Config
from hem.domain.hook.model.result import WorkItem
from hem.domain.hook.port.bus import BusMessage, RequestChannel, Subscriber
from hem.domain.hook.service.matcher import EventMatcher
from hem.domain.hook.service.subscription import SubscriptionManager, is_registry_mutating
from hem.infrastructure.execution.engine import ExecutionEngine

logger = logging.getLogger(__name__)


class HookExecutionManager:
    """Receives hook events from oned and dispatches them to the execution engine.

    One dedicated thread (``hem-receiver``) connects to the bus, loads the
    hooks, subscribes and then receives messages one at a time. Matched events
    are handed to the engine; events on hook create/update/delete calls
    reload the registry after their own dispatch.
    """

    def __init__(
        self,
        config: Config,
        subscriber: Subscriber,
        requester: RequestChannel,
        subscriptions: SubscriptionManager,
        matcher: EventMatcher,
        engine: ExecutionEngine,
    ) -> None:
        self._config = config
        self._subscriber = subscriber
        self._requester = requester
        self._subscriptions = subscriptions
        self._matcher = matcher
        self._engine = engine

        self._stop = threading.Event()
        self._ready = threading.Event()
        self._receiver: threading.Thread | None = None
        self._fatal: BaseException | None = None

        self._engine.set_fatal_handler(self._on_fatal)

    @property
    def fatal_error(self) -> BaseException | None:
        return self._fatal

    @property
    def subscriptions(self) -> SubscriptionManager:
        return self._subscriptions

    def start(self) -> None:
        """Start the execution engine and the receive thread."""
        if self._receiver is not None:
            raise RuntimeError("Hook Execution Manager already started")

        self._requester.connect()
        self._engine.start()

        self._receiver = threading.Thread(target=self._loop, name="hem-receiver", daemon=True)
        self._receiver.start()
        logger.info("Hook Execution Manager started")

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait until hooks are loaded and subscriptions are in place."""
        return self._ready.wait(timeout)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the manager is asked to stop. Returns True if it was."""
        return self._stop.wait(timeout)

    def stop(self) -> None:
        self._stop.set()

    def shutdown(self) -> bool:
        """Stop receiving, then drain the engine for at most ``shutdown_timeout``.

        Returns:
            True if every running hook finished in time.
        """
        self.stop()

        if self._receiver is not None:
            self._receiver.join(timeout=self._config.receive_poll_ms / 1000 * 4)
            if self._receiver.is_alive():
                logger.warning("Receive thread did not stop in time")

        drained = self._engine.shutdown(timeout=self._config.shutdown_timeout)
        logger.info("Hook Execution Manager stopped")
        return drained

    def run(self) -> bool:
        """Run until stopped. Returns False when stopped by a fatal error."""
        self.start()
        try:
            while not self.wait(timeout=1.0):
                pass
        finally:
            self.shutdown()
        return self._fatal is None

    def handle(self, message: BusMessage) -> None:
        """Dispatch one bus message, then reload hooks if it changed the pool."""
        topic = self._matcher.parse_topic(message.topic)
        if topic is None:
            return

        matched = self._matcher.match(message, topic)
        if matched is not None:
            logger.debug(f"Dispatching hook {matched.hook.id} for {topic.type} {topic.key}")
            self._engine.submit(WorkItem(hook=matched.hook, body=matched.body))

        if is_registry_mutating(topic.key):
            self._subscriptions.reload()

    def _on_fatal(self, error: BaseException) -> None:
        if self._fatal is None:
            self._fatal = error
        logger.critical(f"Stopping Hook Execution Manager: {error}")
        self.stop()

    def _loop(self) -> None:
        try:
            self._subscriber.connect()
            self._subscriptions.initial_load()
            self._ready.set()

            while not self._stop.is_set():
                message = self._subscriber.receive(timeout_ms=self._config.receive_poll_ms)
                if message is None:
                    continue
                try:
                    self.handle(message)
                except Exception:
                    logger.exception(f"Error handling event {message.topic!r}")
        except Exception as e:
            logger.exception("Receive loop crashed")
            self._on_fatal(e)
