import os

# must be set before the workflow graph opens its checkpoint db
os.environ.setdefault("MEDITRACK_CHECKPOINT_DB", ":memory:")
os.environ.pop("INTERNAL_SERVICE_SECRET", None)

from datetime import date

import pytest
from fastapi.testclient import TestClient

from meditrack.schemas.models import Medication, Prescription
from meditrack.services.store import STORE


DOCTOR = {"X-User-Id": "doc-1", "X-User-Role": "doctor"}
PATIENT = {"X-User-Id": "pat-1", "X-User-Role": "patient"}
SYSTEM = {"X-User-Id": "scheduler", "X-User-Role": "system"}


@pytest.fixture(autouse=True)
def clean_store():
    STORE.reset()
    yield
    STORE.reset()


@pytest.fixture
def client():
    from meditrack.main import app

    return TestClient(app)


class FakeAdvisory:
    """Stands in for the chat-completion call; records prompts."""

    def __init__(self, reply='{"overall_assessment": "Safe", "flags": []}'):
        self.reply = reply
        self.error = None
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def advisory(monkeypatch):
    fake = FakeAdvisory()
    monkeypatch.setattr("meditrack.services.safety_check.chat_completion", fake)
    return fake


def make_prescription(start=date(2025, 1, 1), end=date(2025, 1, 3), meds=None, **kw):
    if meds is None:
        meds = [Medication(name="Amoxicillin", dosage="500mg", timing=["morning", "night"])]
    return Prescription(
        id=kw.pop("id", "rx-1"),
        doctor_id=kw.pop("doctor_id", "doc-1"),
        patient_id=kw.pop("patient_id", "pat-1"),
        start_date=start,
        end_date=end,
        medications=meds,
        **kw,
    )
