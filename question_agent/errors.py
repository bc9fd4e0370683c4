"""
Error Taxonomy
==============

Every failure the question agent can hit, grouped by how the reasoning
loop treats it.

Recoverable (turned into an observation so the model can self-correct):
- UnknownToolError: the model named a tool that is not registered
- ToolInputValidationError: the arguments did not match the tool's schema
- ToolExecutionError: the tool ran and failed (including timeouts)
- ModelResponseParseError: the model's text was neither an action nor an answer

Fatal (terminate the request):
- CollaboratorUnavailableError: storage or the language model is down
- MaxIterationsExceeded: the think/act budget ran out

QTI-specific:
- MalformedInputError: a question record is missing fields QTI needs
- QtiValidationFailure: a generated document failed its own validation

Storage-specific (raised by QuestionStore, reported to the model):
- RecordNotFoundError
- DuplicateRecordError
"""


class QuestionAgentError(Exception):
    """Base class for all question agent errors."""


# ==============================================================================
# Tool Registry
# ==============================================================================

class DuplicateToolError(QuestionAgentError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


class UnknownToolError(QuestionAgentError):
    """The requested tool is not in the registry."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = available or []
        message = f"Tool '{name}' does not exist"
        if self.available:
            message += f". Available tools: {', '.join(self.available)}"
        super().__init__(message)


class ToolInputValidationError(QuestionAgentError):
    """
    The argument payload does not conform to the tool's input schema.

    Attributes:
        tool_name: The tool whose schema rejected the payload
        field_errors: One "field: message" string per violation
    """

    def __init__(self, tool_name: str, field_errors: list[str]):
        self.tool_name = tool_name
        self.field_errors = field_errors
        details = "; ".join(field_errors) if field_errors else "invalid input"
        super().__init__(f"Invalid input for tool '{tool_name}': {details}")


class ToolExecutionError(QuestionAgentError):
    """A tool failed while running. Recoverable: reported back to the model."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' failed: {message}")


class CollaboratorUnavailableError(QuestionAgentError):
    """
    An external collaborator (storage, language model) cannot be reached.

    This is the only tool-side failure that aborts a request.
    """

    def __init__(self, collaborator: str, message: str):
        self.collaborator = collaborator
        super().__init__(f"{collaborator} is unavailable: {message}")


# ==============================================================================
# QTI
# ==============================================================================

class MalformedInputError(QuestionAgentError):
    """A question record cannot be turned into QTI."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Question cannot be converted to QTI: " + "; ".join(problems))


class QtiValidationFailure(QuestionAgentError):
    """A document produced by the generator did not pass validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Generated QTI failed validation: " + "; ".join(errors))


# ==============================================================================
# Reasoning Loop
# ==============================================================================

class ModelResponseParseError(QuestionAgentError):
    """The model's output matched neither a tool call nor a final answer."""

    def __init__(self, message: str, raw_output: str = ""):
        self.raw_output = raw_output
        super().__init__(message)


class MaxIterationsExceeded(QuestionAgentError):
    """The loop used its whole iteration budget without a final answer."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(f"Stopped after {max_iterations} iterations without a final answer")


# ==============================================================================
# Storage
# ==============================================================================

class RecordNotFoundError(QuestionAgentError):
    """No record with the given id exists."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class DuplicateRecordError(QuestionAgentError):
    """A record with the given id already exists."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} already exists")
