import logging
from typing import Callable, Optional

from meditrack.schemas.models import RiskAssessment, SafetyCheckRequest
from meditrack.services.advisory_client import AdvisoryError, chat_completion
from meditrack.services.safety_interpreter import interpret
from meditrack.services.safety_prompt import render_safety_prompt

logger = logging.getLogger(__name__)

def run_safety_check(
    req: SafetyCheckRequest,
    complete: Optional[Callable[[str], str]] = None,
) -> RiskAssessment:
    """Prompt -> advisory call -> interpreter. Upstream failures become ERROR assessments."""
    complete = complete or chat_completion
    prompt = render_safety_prompt(req)

    try:
        raw = complete(prompt)
    except AdvisoryError as e:
        logger.error("Safety check failed: %s", e)
        return RiskAssessment(verdict="ERROR", diagnostic=str(e))

    assessment = interpret(raw)
    logger.info(
        "Safety check verdict=%s flags=%d drugs=%d",
        assessment.verdict, len(assessment.flags), len(req.new_prescriptions),
    )
    return assessment
