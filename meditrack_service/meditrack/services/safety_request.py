from datetime import date
from typing import Iterable, List, Optional, Union

from meditrack.schemas.models import (
    AS_DIRECTED,
    NONE_PROVIDED,
    NOT_SPECIFIED,
    SLOT_ORDER,
    DraftPrescription,
    HistoryItem,
    PatientProfile,
    Prescription,
    SafetyCheckRequest,
    SafetyDrug,
    SafetyHistory,
    SafetyPatient,
)

def age_on(date_of_birth: Optional[date], today: date) -> int:
    """Whole years, floored, never negative. Unknown birth date counts as 0."""
    if date_of_birth is None:
        return 0
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return max(0, years)

def _or_default(value: Optional[str], default: str) -> str:
    value = (value or "").strip()
    return value or default

def history_text(items: Iterable[HistoryItem]) -> str:
    parts: List[str] = []
    for it in items:
        desc = (it.description or "").strip()
        parts.append(f"{it.complication}: {desc}" if desc else it.complication)
    return "; ".join(parts) if parts else NONE_PROVIDED

def frequency_phrase(timing: Iterable[str]) -> str:
    selected = set(timing or [])
    words = [s.capitalize() for s in SLOT_ORDER if s in selected]
    return ", ".join(words) if words else AS_DIRECTED

def build_safety_request(
    profile: PatientProfile,
    draft: Union[Prescription, DraftPrescription],
    today: Optional[date] = None,
) -> SafetyCheckRequest:
    today = today or date.today()

    return SafetyCheckRequest(
        patient=SafetyPatient(
            age=age_on(profile.date_of_birth, today),
            gender=_or_default(profile.gender, NOT_SPECIFIED),
            consultation_reason=_or_default(draft.diagnosis, NOT_SPECIFIED),
        ),
        history=SafetyHistory(
            known_complications=history_text(profile.medical_history),
            past_medications=_or_default(profile.ongoing_medications, NONE_PROVIDED),
        ),
        new_prescriptions=[
            SafetyDrug(drug_name=m.name, dosage=m.dosage, frequency=frequency_phrase(m.timing))
            for m in draft.medications
        ],
    )
