"""Hook execution models: work items and their results."""

from xml.etree.ElementTree import Element, SubElement, tostring

from hem.domain.hook.model.hook import Hook
from hem.domain.shared import wire
from hem.domain.shared.model.value import ValueObject

# Exit code reported when a command could not be launched or finished
LAUNCH_FAILURE_CODE = 255


class WorkItem(ValueObject):
    """A matched event waiting for execution. Consumed exactly once."""

    hook: Hook
    body: str


class CommandResult(ValueObject):
    """Outcome of one command invocation, local or remote."""

    command: str
    code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.code == 0

    def to_element(self) -> Element:
        root = Element("EXECUTION_RESULT")
        SubElement(root, "COMMAND").text = self.command
        SubElement(root, "STDOUT").text = wire.encode(self.stdout)
        SubElement(root, "STDERR").text = wire.encode(self.stderr)
        SubElement(root, "CODE").text = str(self.code)
        return root

    def to_xml(self) -> str:
        return tostring(self.to_element(), encoding="unicode")


class ResultRecord(ValueObject):
    """What gets reported to oned for one execution."""

    hook_id: int
    arguments: str
    result: CommandResult

    @property
    def exit_code(self) -> int:
        return self.result.code

    def to_xml(self) -> str:
        """``<ARGUMENTS>`` followed by the ``<EXECUTION_RESULT>`` fragment."""
        arguments = Element("ARGUMENTS")
        arguments.text = self.arguments
        return tostring(arguments, encoding="unicode") + self.result.to_xml()
