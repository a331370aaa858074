import uuid
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Optional

from meditrack.core.schedule_config import SLOT_TIMES
from meditrack.schemas.models import DoseEvent, Prescription

# stable namespace so dose ids are reproducible across expansions
_DOSE_NAMESPACE = uuid.UUID("6f1c2a3e-8d4b-4f7a-9c1e-2b5d7e9f0a13")

class EmptyScheduleError(ValueError):
    pass

class InvalidPrescriptionError(ValueError):
    pass

def dose_id_for(prescription_id: str, medication_id: str, day: str, slot: str) -> str:
    return str(uuid.uuid5(_DOSE_NAMESPACE, f"{prescription_id}|{medication_id}|{day}|{slot}"))

def ensure_schedulable(prescription: Prescription) -> None:
    """
    Reject prescriptions that cannot produce a dose calendar.
    Raised before anything is persisted so the caller can block finalization.
    """
    if prescription.end_date < prescription.start_date:
        raise InvalidPrescriptionError("end_date must not be before start_date")
    if not prescription.medications:
        raise EmptyScheduleError("Prescription has no medications; nothing to schedule.")
    for m in prescription.medications:
        if not m.timing:
            raise EmptyScheduleError(f"Medication '{m.name}' has no timing selected.")

def expand_schedule(
    prescription: Prescription,
    slot_times: Optional[Dict[str, time]] = None,
) -> List[DoseEvent]:
    """
    One pending DoseEvent per (day in [start, end], medication, timing slot).
    Pure: same prescription in, same events out.
    """
    ensure_schedulable(prescription)
    times = {**SLOT_TIMES, **(slot_times or {})}

    events: List[DoseEvent] = []
    n_days = (prescription.end_date - prescription.start_date).days + 1
    for offset in range(n_days):
        day = prescription.start_date + timedelta(days=offset)
        for med in prescription.medications:
            for slot in med.timing:
                events.append(DoseEvent(
                    id=dose_id_for(prescription.id, med.id, day.isoformat(), slot),
                    prescription_id=prescription.id,
                    medication_id=med.id,
                    medication_name=med.name,
                    dosage=med.dosage,
                    patient_id=prescription.patient_id,
                    slot=slot,
                    scheduled_at=datetime.combine(day, times[slot]),
                    status="pending",
                ))
    return events

def sort_by_schedule(events: Iterable[DoseEvent]) -> List[DoseEvent]:
    return sorted(events, key=lambda e: e.scheduled_at)
