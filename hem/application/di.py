"""Dependency injection wiring for the Hook Execution Manager."""

from collections.abc import Iterable

import httpx
import zmq
from dishka import Container, Provider, Scope, from_context, make_container, provide

from hem.application.manager import HookExecutionManager
from hem.config import Config
from hem.domain.hook.model.registry import HookRegistry
from hem.domain.hook.port.bus import RequestChannel, Subscriber
from hem.domain.hook.port.command_runner import CommandRunner
from hem.domain.hook.port.hook_source import HookSource
from hem.domain.hook.port.reporter import ResultReporter
from hem.domain.hook.service.matcher import EventMatcher
from hem.domain.hook.service.subscription import SubscriptionManager
from hem.infrastructure.bus.zeromq import ZmqRequester, ZmqSubscriber
from hem.infrastructure.command.runner import (
    HookCommandRunner,
    LocalCommandRunner,
    SshCommandRunner,
)
from hem.infrastructure.execution.engine import ExecutionEngine
from hem.infrastructure.oned.hook_source import XmlRpcHookSource, read_session
from hem.infrastructure.reporting.channel import ReportingChannel

# oned answers hookpool calls quickly; anything slower is treated as unreachable
XMLRPC_TIMEOUT = 30.0


class OnedProvider(Provider):
    """Collaborators living in oned: hook pool and message bus."""

    config = from_context(provides=Config, scope=Scope.APP)

    @provide(scope=Scope.APP)
    def get_http_client(self) -> Iterable[httpx.Client]:
        with httpx.Client(timeout=XMLRPC_TIMEOUT) as client:
            yield client

    @provide(scope=Scope.APP)
    def get_hook_source(self, client: httpx.Client, config: Config) -> HookSource:
        return XmlRpcHookSource(client, config.one_xmlrpc, read_session(config.one_auth))

    @provide(scope=Scope.APP)
    def get_zmq_context(self) -> Iterable[zmq.Context]:
        context = zmq.Context()
        yield context
        # Closes the sockets too; a hung worker may still hold the requester
        context.destroy(linger=0)

    @provide(scope=Scope.APP)
    def get_subscriber(self, context: zmq.Context, config: Config) -> Subscriber:
        return ZmqSubscriber(context, config.subscriber_endpoint)

    @provide(scope=Scope.APP)
    def get_requester(self, context: zmq.Context, config: Config) -> RequestChannel:
        return ZmqRequester(context, config.replier_endpoint, timeout=config.report_timeout)


class HookProvider(Provider):
    registry = provide(HookRegistry, scope=Scope.APP)
    matcher = provide(EventMatcher, scope=Scope.APP)
    subscriptions = provide(SubscriptionManager, scope=Scope.APP)
    manager = provide(HookExecutionManager, scope=Scope.APP)

    @provide(scope=Scope.APP)
    def get_command_runner(self) -> CommandRunner:
        return HookCommandRunner(local=LocalCommandRunner(), remote=SshCommandRunner())

    @provide(scope=Scope.APP)
    def get_reporter(self, channel: RequestChannel) -> ResultReporter:
        return ReportingChannel(channel)

    @provide(scope=Scope.APP)
    def get_engine(
        self, runner: CommandRunner, reporter: ResultReporter, config: Config
    ) -> ExecutionEngine:
        return ExecutionEngine(
            runner=runner,
            reporter=reporter,
            hook_base_path=config.hook_base_path,
            concurrency=config.concurrency,
            queue_size=config.queue_size,
        )


def create_container(config: Config) -> Container:
    return make_container(OnedProvider(), HookProvider(), context={Config: config})
