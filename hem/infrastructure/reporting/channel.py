"""Report hook execution results to oned.

One line per execution::

    <exit code> <hook id> <base64 of <ARGUMENTS>..</ARGUMENTS><EXECUTION_RESULT>..>

oned answers each line with ``ACK``.
"""

import logging
import threading

from hem.domain.hook.model.result import ResultRecord
from hem.domain.hook.port.bus import RequestChannel
from hem.domain.hook.port.reporter import ResultReporter
from hem.domain.shared import wire

logger = logging.getLogger(__name__)

ACK = "ACK"


def encode_report(record: ResultRecord) -> str:
    return f"{record.exit_code} {record.hook_id} {wire.encode(record.to_xml())}"


class ReportingChannel(ResultReporter):
    """Single-writer wrapper around the request channel.

    Every send/receive pair runs under one lock; this is where the execution
    workers serialize.
    """

    def __init__(self, channel: RequestChannel) -> None:
        self._channel = channel
        self._lock = threading.Lock()

    def report(self, record: ResultRecord) -> bool:
        """Send ``record`` and check the acknowledgment.

        A wrong reply is logged and not retried: the result was already sent.

        Raises:
            ReportTimeoutError: oned did not answer in time.
        """
        message = encode_report(record)

        with self._lock:
            ack = self._channel.request(message)

        if ack != ACK:
            logger.error(f"Wrong ACK message: {ack!r} (hook {record.hook_id})")
            return False

        return True
