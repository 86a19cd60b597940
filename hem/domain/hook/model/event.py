"""Event bodies published by oned and the fragments hooks receive from them."""

from xml.etree import ElementTree

from hem.domain.shared import wire
from hem.domain.shared.model.value import ValueObject


class EventFragment(ValueObject):
    """Encoded pieces of an event body that can be passed to a hook.

    ``degraded`` is set when the body could not be parsed; hooks then run
    without arguments instead of failing the event.
    """

    hook_type: str = ""
    api: str = ""
    template: str = ""
    degraded: bool = False

    @classmethod
    def from_body(cls, body: str) -> "EventFragment":
        """Capture the API parameters or the resource template of an event.

        API events carry the call parameters in ``PARAMETERS``; STATE events
        carry the object template in an element named after ``HOOK_OBJECT``
        (e.g. ``VM``). The captured element is serialized and base64 encoded.
        """
        try:
            root = ElementTree.fromstring(body)
        except ElementTree.ParseError:
            return cls(degraded=True)

        hook_type = _first_text(root, "HOOK_TYPE")
        if hook_type is None:
            return cls(degraded=True)

        hook_type = hook_type.upper()

        if hook_type == "API":
            return cls(hook_type=hook_type, api=wire.encode(_serialize(root, "PARAMETERS")))

        if hook_type == "STATE":
            obj = _first_text(root, "HOOK_OBJECT")
            if obj is None:
                return cls(hook_type=hook_type, degraded=True)
            return cls(
                hook_type=hook_type,
                template=wire.encode(_serialize(root, obj.upper())),
            )

        return cls(hook_type=hook_type)


def _first_text(root: ElementTree.Element, tag: str) -> str | None:
    element = next(root.iter(tag), None)
    if element is None:
        return None
    return (element.text or "").strip()


def _serialize(root: ElementTree.Element, tag: str) -> str:
    """Serialize the first ``tag`` element, or empty string if there is none."""
    if not tag:
        return ""
    element = next(root.iter(tag), None)
    if element is None:
        return ""
    # tostring() would include the text following the element
    element.tail = None
    return ElementTree.tostring(element, encoding="unicode")
