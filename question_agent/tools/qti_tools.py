"""
QTI Tools
=========

Tools that produce and check QTI 3.0 XML.

- generate_qti: question record → QTI item. The result is validated before
  it is handed back, so the model never sees a generated document that
  fails validation.
- validate_qti: QTI XML → {valid, errors, warnings}. Invalid XML is a normal
  outcome, reported as data rather than as a tool failure.
"""

from typing import Any

from pydantic import Field

from question_agent.errors import QtiValidationFailure
from question_agent.qti import generate_qti, item_identifier, validate_qti
from question_agent.tools.registry import ToolDescriptor, ToolInput, ToolResult
from question_agent.utils.logger import Logger

logger = Logger("Tools:Qti")


class GenerateQtiInput(ToolInput):
    question: dict[str, Any] = Field(
        description="Question record with id, stem, question_type, choices and correct_answer"
    )


class ValidateQtiInput(ToolInput):
    qti_xml: str = Field(description="The full, raw QTI XML document to check")


async def _generate_qti(params: GenerateQtiInput) -> ToolResult:
    """Generate a QTI item; MalformedInputError propagates to the registry."""
    xml = generate_qti(params.question)

    validation = validate_qti(xml)
    if not validation.valid:
        raise QtiValidationFailure(validation.errors)

    logger.debug(f"Generated QTI for question {params.question.get('id')}")
    return ToolResult(success=True, data={
        "identifier": item_identifier(str(params.question["id"])),
        "qti_xml": xml,
        "validation": validation.to_dict(),
    })


async def _validate_qti(params: ValidateQtiInput) -> ToolResult:
    """Validate a QTI document."""
    validation = validate_qti(params.qti_xml)
    if not validation.valid:
        logger.debug(f"QTI validation reported {len(validation.errors)} errors")
    return ToolResult(success=True, data=validation.to_dict())


def build_qti_tools() -> list[ToolDescriptor]:
    """Create the QTI tools."""
    return [
        ToolDescriptor(
            name="generate_qti",
            description=(
                "Convert a question record (for example one returned by lookup_question) "
                "into a validated QTI 3.0 XML item."
            ),
            input_model=GenerateQtiInput,
            execute=_generate_qti,
        ),
        ToolDescriptor(
            name="validate_qti",
            description=(
                "Validate a QTI 3.0 XML string. Input must be the FULL, RAW XML document; "
                "never pass placeholders like '(insert XML here)'."
            ),
            input_model=ValidateQtiInput,
            execute=_validate_qti,
        ),
    ]
