"""
QTI Codec
=========

Converts question records to QTI 3.0 assessment items and checks QTI
documents for the structural rules a delivery engine relies on.

QTI 3.0 item layout produced by generate_qti():

    <qti-assessment-item identifier=... title=...>
      <qti-response-declaration identifier="RESPONSE" ...>
        <qti-correct-response><qti-value>ChoiceC</qti-value></qti-correct-response>
      </qti-response-declaration>
      <qti-outcome-declaration identifier="SCORE" .../>
      <qti-item-body>
        <p>prompt</p>
        <qti-choice-interaction response-identifier="RESPONSE">
          <qti-simple-choice identifier="ChoiceA">...</qti-simple-choice>
        </qti-choice-interaction>
      </qti-item-body>
      <qti-response-processing template=".../match_correct"/>
    </qti-assessment-item>

The documents are built as element trees rather than string templates, so
escaping is never forgotten and every output is well-formed.

validate_qti() never raises: malformed input is reported as a failed
QtiValidationResult.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import ValidationError

from question_agent.errors import MalformedInputError
from question_agent.models import Question, QuestionType

QTI_NAMESPACE = "http://www.imsglobal.org/xsd/imsqtiasi_v3p0"
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"
MATCH_CORRECT_TEMPLATE = "https://purl.imsglobal.org/spec/qti/v3p0/rptemplates/match_correct"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

RESPONSE_IDENTIFIER = "RESPONSE"
DEFAULT_EXPECTED_LENGTH = 15

CHOICE_ELEMENTS = {"qti-simple-choice", "qti-inline-choice"}

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")
_LANGUAGE_RE = re.compile(r"^[A-Za-z]{2,8}(-[A-Za-z0-9]{1,8})*$")
_ILLEGAL_XML_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")
_FENCE_START_RE = re.compile(r"^\s*```[A-Za-z]*\s*")
_FENCE_END_RE = re.compile(r"\s*```\s*$")

ET.register_namespace("", QTI_NAMESPACE)


def _q(tag: str) -> str:
    """Qualify a tag name with the QTI namespace."""
    return f"{{{QTI_NAMESPACE}}}{tag}"


def _local(tag: str) -> str:
    """Strip the namespace from a tag name."""
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block (```xml ... ```), if any."""
    text = _FENCE_START_RE.sub("", text, count=1)
    return _FENCE_END_RE.sub("", text, count=1).strip()


def item_identifier(question_id: str) -> str:
    """
    Derive a valid QTI item identifier from a question id.

    Characters outside [A-Za-z0-9_.-] become '-', and ids that would start
    with a digit or punctuation get an 'item-' prefix.
    """
    identifier = re.sub(r"[^A-Za-z0-9_.\-]", "-", question_id.strip())
    if not _IDENTIFIER_RE.match(identifier):
        identifier = f"item-{identifier}"
    return identifier


# ==============================================================================
# Generation
# ==============================================================================

def _coerce_question(question: Question | Mapping[str, Any]) -> Question:
    """Validate raw question data, collecting every problem found."""
    if isinstance(question, Question):
        data = question.model_dump()
    elif isinstance(question, Mapping):
        data = dict(question)
    else:
        raise MalformedInputError([f"question must be an object, got {type(question).__name__}"])

    problems: list[str] = []
    try:
        record = Question.model_validate(data)
    except ValidationError as e:
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"]) or "question"
            problems.append(f"{location}: {err['msg']}")
        raise MalformedInputError(problems) from e

    problems = question_problems(record)
    if problems:
        raise MalformedInputError(problems)
    return record


def question_problems(record: Question) -> list[str]:
    """
    Check a validated record for problems its field types cannot express.

    Covers blank text, characters XML cannot carry, and choice questions
    whose choices or correct answer do not line up. Returns an empty list
    when the record is consistent.
    """
    problems: list[str] = []
    if not record.stem.strip():
        problems.append("stem: must not be blank")
    if not record.correct_answer.strip():
        problems.append("correct_answer: must not be blank")

    texts = {"title": record.title, "stem": record.stem, "correct_answer": record.correct_answer}
    texts.update({f"choices.{c.id}": c.text for c in record.choices})
    for name, value in texts.items():
        if _ILLEGAL_XML_CHARS_RE.search(value):
            problems.append(f"{name}: contains characters not allowed in XML")

    if record.question_type == QuestionType.CHOICE:
        choice_ids = [c.id for c in record.choices]
        if len(choice_ids) < 2:
            problems.append("choices: a choice question needs at least 2 choices")
        duplicates = sorted({cid for cid in choice_ids if choice_ids.count(cid) > 1})
        if duplicates:
            problems.append(f"choices: duplicate choice ids {', '.join(duplicates)}")
        invalid = [cid for cid in choice_ids if not _IDENTIFIER_RE.match(cid)]
        if invalid:
            problems.append(f"choices: invalid choice ids {', '.join(invalid)}")
        if choice_ids and record.correct_answer not in choice_ids:
            problems.append(
                f"correct_answer: '{record.correct_answer}' is not one of the choice ids"
            )
    return problems


def generate_qti(question: Question | Mapping[str, Any]) -> str:
    """
    Build a QTI 3.0 assessment item from a question record.

    The mapping is deterministic: the same record always yields the same
    document, byte for byte.

    Args:
        question: A Question or the equivalent field mapping

    Returns:
        The XML document, including the XML declaration

    Raises:
        MalformedInputError: If required fields are missing or inconsistent
    """
    record = _coerce_question(question)
    is_choice = record.question_type == QuestionType.CHOICE
    language = str(record.metadata.get("language", "en"))
    if not _LANGUAGE_RE.match(language):
        language = "en"

    root = ET.Element(_q("qti-assessment-item"), {
        "identifier": item_identifier(record.id),
        "title": record.title or record.stem[:80],
        "adaptive": "false",
        "time-dependent": "false",
        f"{{{XML_NAMESPACE}}}lang": language,
    })

    response = ET.SubElement(root, _q("qti-response-declaration"), {
        "identifier": RESPONSE_IDENTIFIER,
        "cardinality": "single",
        "base-type": "identifier" if is_choice else "string",
    })
    correct = ET.SubElement(response, _q("qti-correct-response"))
    ET.SubElement(correct, _q("qti-value")).text = record.correct_answer

    outcome = ET.SubElement(root, _q("qti-outcome-declaration"), {
        "identifier": "SCORE",
        "cardinality": "single",
        "base-type": "float",
    })
    default = ET.SubElement(outcome, _q("qti-default-value"))
    ET.SubElement(default, _q("qti-value")).text = "0"

    body = ET.SubElement(root, _q("qti-item-body"))
    ET.SubElement(body, _q("p")).text = record.stem

    if is_choice:
        interaction = ET.SubElement(body, _q("qti-choice-interaction"), {
            "response-identifier": RESPONSE_IDENTIFIER,
            "shuffle": "true" if record.metadata.get("shuffle") else "false",
            "max-choices": "1",
        })
        for choice in record.choices:
            ET.SubElement(
                interaction, _q("qti-simple-choice"), {"identifier": choice.id}
            ).text = choice.text
    else:
        answer = ET.SubElement(body, _q("p"))
        answer.text = "Answer: "
        ET.SubElement(answer, _q("qti-text-entry-interaction"), {
            "response-identifier": RESPONSE_IDENTIFIER,
            "expected-length": str(record.metadata.get("expected_length", DEFAULT_EXPECTED_LENGTH)),
        })

    ET.SubElement(root, _q("qti-response-processing"), {"template": MATCH_CORRECT_TEMPLATE})

    ET.indent(root, space="  ")
    return f"{XML_DECLARATION}\n{ET.tostring(root, encoding='unicode')}\n"


# ==============================================================================
# Validation
# ==============================================================================

@dataclass
class QtiValidationResult:
    """
    Outcome of validating a QTI document.

    Attributes:
        valid: True when there are no errors (warnings are allowed)
        errors: Violations that make the item unusable
        warnings: Recommended parts that are missing
    """
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _correct_values(declaration: ET.Element) -> list[str] | None:
    """Values of a declaration's correct response, or None if it has none."""
    correct = _children(declaration, "qti-correct-response")
    if not correct:
        return None
    return [(v.text or "").strip() for v in _children(correct[0], "qti-value")]


def validate_qti(xml_text: Any) -> QtiValidationResult:
    """
    Check a QTI 3.0 assessment item.

    Args:
        xml_text: The document; markdown code fences are tolerated

    Returns:
        QtiValidationResult; never raises for bad input
    """
    if not isinstance(xml_text, str) or not xml_text.strip() or xml_text.strip().lower() == "none":
        return QtiValidationResult(valid=False, errors=["No XML provided"])

    try:
        root = ET.fromstring(strip_code_fences(xml_text))
    except (ET.ParseError, ValueError) as e:
        # ValueError covers text expat cannot encode, such as lone surrogates
        return QtiValidationResult(valid=False, errors=[f"XML parsing error: {e}"])

    errors: list[str] = []
    warnings: list[str] = []

    if _local(root.tag) != "qti-assessment-item":
        errors.append(f"Missing root element: qti-assessment-item (found {_local(root.tag)})")
        return QtiValidationResult(valid=False, errors=errors)

    if not root.tag.startswith(f"{{{QTI_NAMESPACE}}}"):
        warnings.append(f"Root element is not in the QTI 3.0 namespace {QTI_NAMESPACE}")
    if not root.get("identifier"):
        errors.append("Missing required attribute: identifier on qti-assessment-item")
    if not root.get("title"):
        warnings.append("Missing recommended attribute: title on qti-assessment-item")

    # Response declarations
    declarations: dict[str, ET.Element] = {}
    response_decls = _children(root, "qti-response-declaration")
    if not response_decls:
        errors.append("Missing required element: qti-response-declaration")
    for decl in response_decls:
        identifier = decl.get("identifier")
        if not identifier:
            errors.append("Missing required attribute: identifier on qti-response-declaration")
            continue
        declarations[identifier] = decl
        if not decl.get("cardinality"):
            warnings.append(f"Missing recommended attribute: cardinality on qti-response-declaration '{identifier}'")
        if not decl.get("base-type"):
            warnings.append(f"Missing recommended attribute: base-type on qti-response-declaration '{identifier}'")

    if not _children(root, "qti-outcome-declaration"):
        warnings.append("Missing qti-outcome-declaration (SCORE is recommended)")

    # Item body and interactions
    bodies = _children(root, "qti-item-body")
    if not bodies:
        errors.append("Missing required element: qti-item-body")
    else:
        interactions = [el for el in bodies[0].iter() if _local(el.tag).endswith("-interaction")]
        if not interactions:
            errors.append("Missing interaction element in qti-item-body (e.g., qti-choice-interaction)")
        for interaction in interactions:
            errors.extend(_check_interaction(interaction, declarations))

    # Response processing
    processing = _children(root, "qti-response-processing")
    if not processing:
        warnings.append("Missing qti-response-processing element (recommended for scoring)")
    elif (processing[0].get("template") or "").endswith("match_correct"):
        if not any(_correct_values(d) for d in declarations.values()):
            errors.append("Using match_correct template but missing qti-correct-response element")

    return QtiValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _check_interaction(interaction: ET.Element, declarations: dict[str, ET.Element]) -> list[str]:
    """Check one interaction against the declared responses."""
    name = _local(interaction.tag)
    response_id = interaction.get("response-identifier")
    if not response_id:
        return [f"Missing required attribute: response-identifier on {name}"]
    if response_id not in declarations:
        return [f"{name} references undeclared response '{response_id}'"]

    choices = [el for el in interaction if _local(el.tag) in CHOICE_ELEMENTS]
    if name not in ("qti-choice-interaction", "qti-inline-choice-interaction"):
        return []

    errors: list[str] = []
    if not choices:
        errors.append(f"{name} has no choices")
    choice_ids = [c.get("identifier") for c in choices]
    if any(not cid for cid in choice_ids):
        errors.append(f"Choice without identifier in {name}")
    seen = [cid for cid in choice_ids if cid]
    duplicates = sorted({cid for cid in seen if seen.count(cid) > 1})
    if duplicates:
        errors.append(f"Duplicate choice identifiers in {name}: {', '.join(duplicates)}")

    declaration = declarations[response_id]
    if declaration.get("base-type", "identifier") == "identifier":
        for value in _correct_values(declaration) or []:
            if value not in seen:
                errors.append(
                    f"Correct response '{value}' for '{response_id}' is not a choice identifier"
                )
    return errors


# ==============================================================================
# Parsing
# ==============================================================================

def _text_outside_interactions(element: ET.Element) -> str:
    parts = [element.text or ""]
    for child in element:
        if not _local(child.tag).endswith("-interaction"):
            parts.append(_text_outside_interactions(child))
        parts.append(child.tail or "")
    return " ".join(parts)


def parse_qti(xml_text: str) -> dict[str, Any]:
    """
    Extract question fields from a valid QTI item.

    Supports single-response choice and text-entry items, which is what the
    generator produces and what insert_question stores.

    Returns:
        Field mapping suitable for Question.model_validate (id included)

    Raises:
        MalformedInputError: If the document is invalid or unsupported
    """
    result = validate_qti(xml_text)
    if not result.valid:
        raise MalformedInputError(result.errors)

    root = ET.fromstring(strip_code_fences(xml_text))
    body = _children(root, "qti-item-body")[0]
    interaction = next(el for el in body.iter() if _local(el.tag).endswith("-interaction"))
    interaction_name = _local(interaction.tag)

    if interaction_name == "qti-choice-interaction":
        question_type = QuestionType.CHOICE
    elif interaction_name == "qti-text-entry-interaction":
        question_type = QuestionType.TEXT_ENTRY
    else:
        raise MalformedInputError([f"Unsupported interaction type: {interaction_name}"])

    declaration = next(
        d for d in _children(root, "qti-response-declaration")
        if d.get("identifier") == interaction.get("response-identifier")
    )
    correct = _correct_values(declaration) or []
    if not correct:
        raise MalformedInputError(["qti-correct-response has no value"])

    stem = " ".join(_text_outside_interactions(body).split())
    if question_type == QuestionType.TEXT_ENTRY and stem.endswith("Answer:"):
        stem = stem[: -len("Answer:")].rstrip()

    choices = [
        {"id": c.get("identifier"), "text": " ".join("".join(c.itertext()).split())}
        for c in interaction if _local(c.tag) == "qti-simple-choice"
    ]

    metadata: dict[str, Any] = {}
    language = root.get(f"{{{XML_NAMESPACE}}}lang")
    if language:
        metadata["language"] = language
    expected_length = interaction.get("expected-length") or ""
    if question_type == QuestionType.TEXT_ENTRY and expected_length.isdigit():
        metadata["expected_length"] = int(expected_length)
    if interaction.get("shuffle") == "true":
        metadata["shuffle"] = True

    return {
        "id": root.get("identifier"),
        "title": root.get("title") or stem[:80],
        "stem": stem,
        "question_type": question_type.value,
        "choices": choices,
        "correct_answer": correct[0],
        "metadata": metadata,
    }
