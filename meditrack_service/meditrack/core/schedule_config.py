import os
from datetime import time
from typing import Dict

from meditrack.core.env import load_env

load_env()

def _parse_hhmm(value: str) -> time:
    h, m = map(int, value.strip().split(":"))
    return time(hour=h, minute=m)

# wall-clock time for each timing slot
SLOT_TIMES: Dict[str, time] = {
    "morning": _parse_hhmm(os.getenv("MEDITRACK_SLOT_MORNING", "08:00")),
    "afternoon": _parse_hhmm(os.getenv("MEDITRACK_SLOT_AFTERNOON", "13:00")),
    "night": _parse_hhmm(os.getenv("MEDITRACK_SLOT_NIGHT", "20:00")),
}

# 0 => never auto-mark pending doses as missed
AUTO_MISS_AFTER_MINUTES = int(os.getenv("MEDITRACK_AUTO_MISS_AFTER_MINUTES", "0"))

MISSED_ALERT_THRESHOLD = int(os.getenv("MEDITRACK_MISSED_ALERT_THRESHOLD", "2"))
