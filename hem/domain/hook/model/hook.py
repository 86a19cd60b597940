"""Hook domain models: definitions loaded from oned and their derived keys and filters."""

import posixpath
from collections.abc import Iterable
from enum import StrEnum

from pydantic import Field

from hem.domain.hook.model.event import EventFragment
from hem.domain.shared.error import InvalidHookError
from hem.domain.shared.model.value import ValueObject

API_PLACEHOLDER = "$API"
TEMPLATE_PLACEHOLDER = "$TEMPLATE"


class HookType(StrEnum):
    API = "api"
    STATE = "state"

    @classmethod
    def parse(cls, value: str | None) -> "HookType | None":
        """Case-insensitive lookup, ``None`` for anything outside the enumeration."""
        if value is None:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


def filter_for(hook_type: HookType, key: str) -> str:
    """Bus filter for a hook of ``hook_type`` reacting to ``key``.

    API filters include the success flag so only successful calls trigger hooks.
    """
    match hook_type:
        case HookType.API:
            return f"API {key} 1"
        case HookType.STATE:
            return f"STATE {key}"


def substitute(tokens: Iterable[str], fragment: EventFragment) -> str:
    """Replace ``$API``/``$TEMPLATE`` tokens; each token is followed by a space."""
    parts = []
    for token in tokens:
        if token == API_PLACEHOLDER:
            parts.append(fragment.api)
        elif token == TEMPLATE_PLACEHOLDER:
            parts.append(fragment.template)
        else:
            parts.append(token)
    return "".join(f"{part} " for part in parts)


class HookRecord(ValueObject):
    """A hook as returned by the hook pool, before validation.

    ``template`` holds the text of each top-level template attribute
    (COMMAND, ARGUMENTS, REMOTE, CALL, RESOURCE, ...).
    """

    id: int
    name: str = ""
    type: str
    template: dict[str, str] = Field(default_factory=dict)


class Hook(ValueObject):
    """A validated hook. Never mutated: a reload replaces hooks wholesale."""

    id: int
    name: str = ""
    type: HookType
    command: str
    arguments: str | None = None
    remote: bool = False
    remote_host: str | None = None
    # API hooks
    call: str | None = None
    # STATE hooks
    resource: str | None = None
    state: str | None = None
    lcm_state: str = ""

    @classmethod
    def from_record(cls, record: HookRecord) -> "Hook":
        """Validate a raw record.

        Raises:
            InvalidHookError: Unknown type, missing command, or a key that
                cannot be derived (which would collide with other broken hooks).
        """
        hook_type = HookType.parse(record.type)
        if hook_type is None:
            raise InvalidHookError(f"Invalid type: {record.type}", hook_id=record.id)

        template = record.template

        command = template.get("COMMAND", "").strip()
        if not command:
            raise InvalidHookError("Missing COMMAND", hook_id=record.id)

        remote = template.get("REMOTE", "").strip().upper() == "YES"
        remote_host = template.get("REMOTE_HOST", "").strip() or None
        if remote and remote_host is None:
            raise InvalidHookError("REMOTE hook without REMOTE_HOST", hook_id=record.id)

        fields = {}
        if hook_type == HookType.API:
            fields["call"] = template.get("CALL", "").strip()
            if not fields["call"]:
                raise InvalidHookError("API hook without CALL", hook_id=record.id)
        else:
            for name in ("RESOURCE", "STATE"):
                value = template.get(name, "").strip()
                if not value:
                    raise InvalidHookError(f"STATE hook without {name}", hook_id=record.id)
                fields[name.lower()] = value
            # resources without an LCM state (hosts, images, ...) end the key with "/"
            fields["lcm_state"] = template.get("LCM_STATE", "").strip()

        return cls(
            id=record.id,
            name=record.name,
            type=hook_type,
            command=command,
            arguments=template.get("ARGUMENTS") or None,
            remote=remote,
            remote_host=remote_host,
            **fields,
        )

    @property
    def key(self) -> str:
        """Lookup key: the API call name, or ``RESOURCE/STATE/LCM_STATE``."""
        if self.type == HookType.API:
            return self.call or ""
        return f"{self.resource}/{self.state}/{self.lcm_state}"

    @property
    def filter(self) -> str:
        return filter_for(self.type, self.key)

    def arguments_for(self, body: str) -> str:
        """Build the argument string for an event body.

        Empty when the hook declares no ARGUMENTS or the body cannot be parsed.
        """
        if not self.arguments:
            return ""

        fragment = EventFragment.from_body(body)
        if fragment.degraded:
            return ""

        return substitute(self.arguments.split(), fragment)

    def command_line(self, base_path: str, arguments: str = "") -> str:
        """Command to run: relative commands live under ``base_path``."""
        command = self.command
        if not command.startswith("/"):
            command = posixpath.join(base_path, command)
        if arguments:
            command = f"{command} {arguments}"
        return command
