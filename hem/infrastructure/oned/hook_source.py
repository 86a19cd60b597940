"""Hook pool retrieval from oned over XML-RPC."""

import logging
import os
import xmlrpc.client
from pathlib import Path
from xml.etree import ElementTree
from xml.parsers.expat import ExpatError

import httpx

from hem.domain.hook.model.hook import HookRecord
from hem.domain.hook.port.hook_source import HookSource
from hem.domain.shared.error import ConfigurationError, HookSourceError

logger = logging.getLogger(__name__)

HOOKPOOL_INFO = "one.hookpool.info"

# one.hookpool.info filter flag: all resources; -1/-1: no id range
ALL_RESOURCES = -2


def default_auth_file() -> Path:
    """``ONE_AUTH`` if set, else ``~/.one/one_auth``."""
    env = os.environ.get("ONE_AUTH")
    if env:
        return Path(env)
    return Path.home() / ".one" / "one_auth"


def read_session(auth_file: Path | None = None) -> str:
    """Read the ``user:password`` session string used for oned calls.

    Raises:
        ConfigurationError: If the file is missing, unreadable or empty.
    """
    path = auth_file or default_auth_file()
    try:
        lines = path.expanduser().read_text().splitlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read auth file {path}: {e}") from e

    session = lines[0].strip() if lines else ""
    if not session:
        raise ConfigurationError(f"Auth file {path} is empty")
    return session


def parse_hook_pool(xml: str) -> list[HookRecord]:
    """Parse a ``HOOK_POOL`` document into raw hook records.

    Hooks without a numeric ID are skipped; type validation is left to the registry.
    """
    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as e:
        raise HookSourceError(f"Malformed hook pool: {e}") from e

    records = []
    for element in root.iter("HOOK"):
        try:
            hook_id = int(element.findtext("ID", ""))
        except ValueError:
            logger.error("Skipping hook without a valid ID")
            continue

        template: dict[str, str] = {}
        template_element = element.find("TEMPLATE")
        if template_element is not None:
            for child in template_element:
                template[child.tag] = (child.text or "").strip()

        records.append(
            HookRecord(
                id=hook_id,
                name=element.findtext("NAME", ""),
                type=element.findtext("TYPE", ""),
                template=template,
            )
        )
    return records


class XmlRpcHookSource(HookSource):
    """Calls ``one.hookpool.info`` on the oned XML-RPC endpoint."""

    def __init__(self, client: httpx.Client, endpoint: str, session: str) -> None:
        self._client = client
        self._endpoint = endpoint
        self._session = session

    def hooks(self) -> list[HookRecord]:
        body = self._call(HOOKPOOL_INFO, ALL_RESOURCES, -1, -1)
        return parse_hook_pool(body)

    def _call(self, method: str, *params) -> str:
        request = xmlrpc.client.dumps((self._session, *params), methodname=method)

        try:
            response = self._client.post(
                self._endpoint,
                content=request.encode("utf-8"),
                headers={"Content-Type": "text/xml"},
            )
            response.raise_for_status()
            (result,), _ = xmlrpc.client.loads(response.content)
        except httpx.HTTPError as e:
            raise HookSourceError(f"{method} failed: {e}") from e
        except xmlrpc.client.Fault as e:
            raise HookSourceError(f"{method} fault: {e.faultString}") from e
        except (ExpatError, ValueError) as e:
            raise HookSourceError(f"{method} returned an invalid response: {e}") from e

        # oned replies [success, body_or_error_message, error_code, ...]
        if not isinstance(result, list) or len(result) < 2:
            raise HookSourceError(f"{method} returned an unexpected response: {result!r}")

        if not result[0]:
            raise HookSourceError(str(result[1]))

        return str(result[1])
