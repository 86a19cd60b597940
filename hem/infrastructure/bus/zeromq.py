"""ZeroMQ adapters for the oned hook bus.

oned publishes every hookable event on a PUB socket as a two-frame message
(topic, base64 body) and listens for execution results on a REP socket.
Sockets are not thread-safe: the subscriber belongs to the receive thread and
the requester is only used under the reporting lock.
"""

import logging

import zmq

from hem.domain.hook.port.bus import BusMessage, RequestChannel, Subscriber
from hem.domain.shared.error import ReportTimeoutError

logger = logging.getLogger(__name__)


class ZmqSubscriber(Subscriber):
    def __init__(self, context: zmq.Context, endpoint: str) -> None:
        self._endpoint = endpoint
        self._socket = context.socket(zmq.SUB)
        self._socket.setsockopt(zmq.LINGER, 0)

    def connect(self) -> None:
        self._socket.connect(self._endpoint)
        logger.info(f"Subscriber connected to {self._endpoint}")

    def subscribe(self, topic_filter: str) -> None:
        self._socket.setsockopt_string(zmq.SUBSCRIBE, topic_filter)

    def unsubscribe(self, topic_filter: str) -> None:
        self._socket.setsockopt_string(zmq.UNSUBSCRIBE, topic_filter)

    def receive(self, timeout_ms: int | None = None) -> BusMessage | None:
        if timeout_ms is not None and not self._socket.poll(timeout_ms, zmq.POLLIN):
            return None

        frames = self._socket.recv_multipart()
        if len(frames) < 2:
            logger.warning(f"Ignoring message with {len(frames)} frame(s)")
            return None

        topic, payload = frames[0], frames[1]
        return BusMessage(
            topic=topic.decode("utf-8", errors="replace"),
            payload=payload.decode("ascii", errors="replace"),
        )

    def close(self) -> None:
        self._socket.close()


class ZmqRequester(RequestChannel):
    """REQ socket towards oned.

    With a timeout set, a missing reply raises ``ReportTimeoutError``. The REQ
    state machine is stuck after that, so callers must treat it as fatal.
    """

    def __init__(self, context: zmq.Context, endpoint: str, timeout: float | None = None) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._socket = context.socket(zmq.REQ)
        self._socket.setsockopt(zmq.LINGER, 0)
        if timeout is not None:
            millis = int(timeout * 1000)
            self._socket.setsockopt(zmq.RCVTIMEO, millis)
            self._socket.setsockopt(zmq.SNDTIMEO, millis)

    def connect(self) -> None:
        self._socket.connect(self._endpoint)
        logger.info(f"Requester connected to {self._endpoint}")

    def request(self, message: str) -> str:
        try:
            self._socket.send_string(message)
            return self._socket.recv_string()
        except zmq.Again as e:
            raise ReportTimeoutError(
                f"No reply from {self._endpoint} within {self._timeout}s"
            ) from e

    def close(self) -> None:
        self._socket.close()
