"""Wire encoding for bus payloads and reports.

oned publishes event bodies base64 encoded and expects the same encoding for
the XML fragments embedded in hook arguments and result reports, so that
whitespace and newlines survive the line oriented protocol.
"""

import base64
import binascii


def encode(data: str | bytes) -> str:
    """Strict base64 (no line breaks) of ``data``."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("ascii")


def decode_bytes(data: str | bytes) -> bytes:
    """Decode base64, ignoring characters outside the alphabet.

    Raises:
        ValueError: If the padding is wrong.
    """
    try:
        return base64.b64decode(data, validate=False)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def decode(data: str | bytes) -> str:
    """Decode base64 into text (invalid UTF-8 sequences are replaced)."""
    return decode_bytes(data).decode("utf-8", errors="replace")
