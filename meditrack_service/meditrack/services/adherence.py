import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from meditrack.schemas.models import AdherenceSummary, DoseEvent, DoseStatus

TERMINAL_STATUSES = frozenset({"taken", "missed", "skipped"})

class InvalidTransitionError(ValueError):
    pass

@dataclass(frozen=True)
class DoseWindow:
    """Closed calendar-day range, matched against the scheduled date."""
    start: date
    end: date

    @classmethod
    def day(cls, d: date) -> "DoseWindow":
        return cls(d, d)

    def contains(self, ev: DoseEvent) -> bool:
        return self.start <= ev.scheduled_at.date() <= self.end

def _percent(taken: int, denominator: int) -> int:
    if denominator <= 0:
        return 100  # nothing scheduled, or everything excused
    # half-up, so 2/3 -> 67
    return int(math.floor(taken * 100 / denominator + 0.5))

def summarize(events: Iterable[DoseEvent], window: Optional[DoseWindow] = None) -> AdherenceSummary:
    selected = [e for e in events if window is None or window.contains(e)]

    taken = sum(1 for e in selected if e.status == "taken")
    missed = sum(1 for e in selected if e.status == "missed")
    pending = sum(1 for e in selected if e.status == "pending")
    skipped = sum(1 for e in selected if e.status == "skipped")
    total = len(selected)

    delays = [
        (e.taken_at - e.scheduled_at).total_seconds() / 60
        for e in selected
        if e.status == "taken" and e.taken_at is not None
    ]
    avg_delay = (sum(delays) / len(delays)) if delays else None

    return AdherenceSummary(
        taken=taken,
        missed=missed,
        pending=pending,
        skipped=skipped,
        total=total,
        adherence_percent=_percent(taken, total - skipped),
        avg_delay_minutes=round(avg_delay, 1) if avg_delay is not None else None,
    )

# ---------------------------
# Dose status state machine
# ---------------------------
def transition(ev: DoseEvent, new_status: DoseStatus, now: Optional[datetime] = None) -> DoseEvent:
    """
    pending -> taken | missed | skipped. Everything else is terminal.
    Returns a new event; the input is left untouched.
    """
    if ev.status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Dose {ev.id} is already {ev.status}.")
    if new_status not in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Cannot move dose {ev.id} to {new_status}.")

    taken_at = (now or datetime.now()) if new_status == "taken" else None
    return ev.model_copy(update={"status": new_status, "taken_at": taken_at})

def mark_taken(ev: DoseEvent, now: Optional[datetime] = None) -> DoseEvent:
    return transition(ev, "taken", now)

def mark_missed(ev: DoseEvent) -> DoseEvent:
    return transition(ev, "missed")

def mark_skipped(ev: DoseEvent) -> DoseEvent:
    return transition(ev, "skipped")

# ---------------------------
# Overdue doses
# ---------------------------
def overdue_events(events: Iterable[DoseEvent], now: datetime) -> List[DoseEvent]:
    """Pending doses whose time has passed. Status is left as is (alerting only)."""
    return [e for e in events if e.status == "pending" and e.scheduled_at < now]

def sweep_overdue(events: Iterable[DoseEvent], now: datetime, after_minutes: int) -> List[DoseEvent]:
    """
    Missed-marking policy: pending doses older than `after_minutes` become missed.
    Returns only the events that changed. after_minutes <= 0 disables the sweep.
    """
    if after_minutes <= 0:
        return []
    cutoff = now - timedelta(minutes=after_minutes)
    return [mark_missed(e) for e in events if e.status == "pending" and e.scheduled_at <= cutoff]
