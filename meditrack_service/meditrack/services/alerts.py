import logging
import uuid
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, Field

from meditrack.core.schedule_config import MISSED_ALERT_THRESHOLD
from meditrack.schemas.models import DoseEvent

logger = logging.getLogger(__name__)

class AlertResult(BaseModel):
    ok: bool
    mock: bool = True
    details: Dict[str, Any] = Field(default_factory=dict)

def send_alert(patient_id: str, payload: Dict[str, Any]) -> AlertResult:
    # no real transport yet; alerts only reach the log
    alert_id = "alert_" + uuid.uuid4().hex[:8]
    logger.warning("Alert %s for patient %s: %s", alert_id, patient_id, payload)
    return AlertResult(ok=True, mock=True, details={"alert_id": alert_id, "patient_id": patient_id, **payload})

def check_missed_threshold(
    patient_id: str,
    events: Iterable[DoseEvent],
    newly_missed: int = 1,
    threshold: int = MISSED_ALERT_THRESHOLD,
) -> Optional[AlertResult]:
    """
    Escalate once, when the latest `newly_missed` doses take a patient's
    missed count from below the threshold to at or above it.
    """
    missed_count = sum(1 for e in events if e.patient_id == patient_id and e.status == "missed")
    if threshold <= 0 or missed_count < threshold or missed_count - newly_missed >= threshold:
        return None
    return send_alert(patient_id, {"reason": "MISSED_DOSE_THRESHOLD", "missed_count": missed_count})

def remind_overdue(patient_id: str, overdue: Iterable[DoseEvent]) -> Optional[AlertResult]:
    doses = [{"dose_id": e.id, "medication": e.medication_name, "scheduled_at": e.scheduled_at.isoformat()} for e in overdue]
    if not doses:
        return None
    return send_alert(patient_id, {"reason": "DOSE_OVERDUE", "doses": doses})
