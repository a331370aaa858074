import logging
from collections import Counter
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from meditrack.api.errors import http_errors
from meditrack.core.schedule_config import AUTO_MISS_AFTER_MINUTES
from meditrack.schemas.models import AdherenceMarkRequest, AdherenceSummary, DoseEvent, Identity, SweepResponse
from meditrack.services.adherence import (
    DoseWindow,
    InvalidTransitionError,
    mark_missed,
    overdue_events,
    summarize,
    sweep_overdue,
    transition,
)
from meditrack.services.alerts import check_missed_threshold, remind_overdue
from meditrack.services.schedule import sort_by_schedule
from meditrack.services.security import current_identity, require_role
from meditrack.services.store import MemoryStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/adherence", tags=["adherence"])

@router.get("/doses", response_model=List[DoseEvent])
def doses(
    patient_id: str,
    day: Optional[date] = None,
    who: Identity = Depends(current_identity),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        events = store.list_dose_events(who, patient_id=patient_id)
    if day is not None:
        window = DoseWindow.day(day)
        events = [e for e in events if window.contains(e)]
    return sort_by_schedule(events)

@router.post("/mark", response_model=DoseEvent)
def mark(
    req: AdherenceMarkRequest,
    who: Identity = Depends(require_role("patient", "system")),
    store: MemoryStore = Depends(get_store),
):
    # skipping is an administrative action, not a patient button
    if req.status == "skipped" and who.role != "system":
        raise HTTPException(status_code=403, detail="Only the system can mark a dose as skipped.")

    def _apply(ev: DoseEvent) -> DoseEvent:
        updated = transition(ev, req.status, now=datetime.now())
        return updated.model_copy(update={"notes": req.notes}) if req.notes else updated

    with http_errors():
        ev = store.modify_dose_event(who, req.dose_id, _apply)

    if ev.status == "missed":
        check_missed_threshold(ev.patient_id, store.list_dose_events(who, patient_id=ev.patient_id))
    return ev

@router.get("/summary", response_model=AdherenceSummary)
def summary(
    patient_id: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    who: Identity = Depends(current_identity),
    store: MemoryStore = Depends(get_store),
):
    if (start is None) != (end is None):
        raise HTTPException(status_code=400, detail="Provide both start and end, or neither.")
    if start is not None and end < start:
        raise HTTPException(status_code=400, detail="end must not be before start.")

    with http_errors():
        events = store.list_dose_events(who, patient_id=patient_id)
    window = DoseWindow(start, end) if start is not None else None
    return summarize(events, window)

@router.get("/overdue", response_model=List[DoseEvent])
def overdue(
    patient_id: str,
    who: Identity = Depends(current_identity),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        events = store.list_dose_events(who, patient_id=patient_id)
    late = sort_by_schedule(overdue_events(events, datetime.now()))
    if who.role == "system":
        remind_overdue(patient_id, late)
    return late

@router.post("/sweep", response_model=SweepResponse)
def sweep(
    who: Identity = Depends(require_role("system")),
    store: MemoryStore = Depends(get_store),
):
    if AUTO_MISS_AFTER_MINUTES <= 0:
        return SweepResponse(enabled=False, marked_missed=0)

    changed: List[DoseEvent] = []
    for ev in sweep_overdue(store.list_dose_events(who), datetime.now(), AUTO_MISS_AFTER_MINUTES):
        try:
            # re-check under the store lock; the patient may have acted meanwhile
            changed.append(store.modify_dose_event(who, ev.id, mark_missed))
        except InvalidTransitionError:
            continue
    logger.info("Missed-dose sweep marked %d doses", len(changed))

    per_patient = Counter(ev.patient_id for ev in changed)
    for patient_id in sorted(per_patient):
        check_missed_threshold(
            patient_id,
            store.list_dose_events(who, patient_id=patient_id),
            newly_missed=per_patient[patient_id],
        )
    return SweepResponse(enabled=True, marked_missed=len(changed))
