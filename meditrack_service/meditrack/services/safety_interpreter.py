"""
Turns the advisory model's free-text reply into a RiskAssessment.

Permissive about noise around the JSON (code fences, leading prose),
strict about the shape of the JSON once located. Never raises: every
failure comes back as an ERROR assessment with a readable diagnostic.
"""
import json
import logging
import re
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError

from meditrack.schemas.models import RiskAssessment, SafetyCheckResponse, SafetyFlag

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[ \t]*(?:json)?[ \t]*\r?\n?([\s\S]*?)```", re.IGNORECASE)

VERDICTS = {
    "safe": "SAFE",
    "caution": "WARNING",
    "high-risk": "HIGH_RISK",
}

WIRE_ASSESSMENT = {
    "SAFE": "Safe",
    "WARNING": "Caution",
    "HIGH_RISK": "High-Risk",
}

class InterpretationError(ValueError):
    pass

class _ReplyFlag(BaseModel):
    model_config = ConfigDict(extra="ignore")

    problematic_drug: StrictStr
    issue: StrictStr
    explanation: StrictStr
    suggested_alternative: StrictStr = ""

class _Reply(BaseModel):
    model_config = ConfigDict(extra="ignore")

    overall_assessment: StrictStr
    flags: List[_ReplyFlag]

def strip_code_fence(text: str) -> str:
    m = _FENCE_RE.search(text)
    return m.group(1).strip() if m else text.strip()

def extract_json_object(text: str) -> Dict[str, Any]:
    """Locate and parse the JSON object in a model reply."""
    body = strip_code_fence(text or "")
    if not body:
        raise InterpretationError("Empty AI response.")

    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        start = body.find("{")
        end = body.rfind("}")
        if start == -1 or end <= start:
            raise InterpretationError("AI returned invalid JSON format.")
        try:
            parsed = json.loads(body[start : end + 1])
        except json.JSONDecodeError as e:
            raise InterpretationError(f"AI returned invalid JSON format: {e.msg}.")

    if not isinstance(parsed, dict):
        raise InterpretationError("AI response is not a JSON object.")
    return parsed

def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"AI response structure does not match expected format ({loc}: {first.get('msg')})."

def interpret(raw_text: str) -> RiskAssessment:
    try:
        parsed = extract_json_object(raw_text)
        reply = _Reply.model_validate(parsed)
    except InterpretationError as e:
        logger.warning("Safety check reply rejected: %s", e)
        return RiskAssessment(verdict="ERROR", diagnostic=str(e))
    except ValidationError as e:
        msg = _validation_message(e)
        logger.warning("Safety check reply rejected: %s", msg)
        return RiskAssessment(verdict="ERROR", diagnostic=msg)

    verdict = VERDICTS.get(reply.overall_assessment.strip().lower())
    if verdict is None:
        msg = f"Unrecognised overall_assessment '{reply.overall_assessment}'."
        logger.warning("Safety check reply rejected: %s", msg)
        return RiskAssessment(verdict="ERROR", diagnostic=msg, raw_assessment=reply.overall_assessment)

    return RiskAssessment(
        verdict=verdict,
        flags=[SafetyFlag(**f.model_dump()) for f in reply.flags],
        raw_assessment=reply.overall_assessment,
    )

def to_wire(assessment: RiskAssessment) -> SafetyCheckResponse:
    """Wire form of a non-error assessment."""
    if assessment.verdict == "ERROR":
        raise InterpretationError(assessment.diagnostic or "Safety check failed.")
    return SafetyCheckResponse(
        overall_assessment=WIRE_ASSESSMENT[assessment.verdict],
        flags=assessment.flags,
    )
