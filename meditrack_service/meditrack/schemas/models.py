import uuid
from datetime import date, datetime, timedelta
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

Role = Literal["doctor", "patient", "system"]
TimingSlot = Literal["morning", "afternoon", "night"]
DoseStatus = Literal["pending", "taken", "missed", "skipped"]
PrescriptionStatus = Literal["pending_review", "active", "completed", "cancelled"]
RiskVerdict = Literal["SAFE", "WARNING", "HIGH_RISK", "ERROR"]
NextStep = Literal["NEED_APPROVAL", "DONE"]

SLOT_ORDER: List[TimingSlot] = ["morning", "afternoon", "night"]

NOT_SPECIFIED = "Not specified"
NONE_PROVIDED = "None provided"
AS_DIRECTED = "As directed"

ADVISORY_NOTE = (
    "AI safety check is advisory only. "
    "The prescribing doctor remains responsible for the final prescription."
)

def _new_id() -> str:
    return str(uuid.uuid4())

class Identity(BaseModel):
    user_id: str
    role: Role

# ---------------------------
# Prescriptions
# ---------------------------
class Medication(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(..., min_length=1)
    dosage: str
    instructions: str = ""
    timing: List[TimingSlot] = Field(..., min_length=1, description="subset of morning/afternoon/night")

    @field_validator("timing")
    @classmethod
    def _canonical_timing(cls, v: List[TimingSlot]) -> List[TimingSlot]:
        # set semantics, canonical order
        return [s for s in SLOT_ORDER if s in v]

class Prescription(BaseModel):
    id: str = Field(default_factory=_new_id)
    doctor_id: str
    patient_id: str
    start_date: date
    end_date: date
    diagnosis: Optional[str] = None
    status: PrescriptionStatus = "pending_review"
    medications: List[Medication] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

def end_date_for(start: date, duration_days: int) -> date:
    """End date as the prescription form computes it: start + duration."""
    return start + timedelta(days=duration_days)

class DraftPrescription(BaseModel):
    patient_id: str
    start_date: date
    end_date: Optional[date] = None
    duration_days: Optional[int] = Field(default=None, ge=0)
    diagnosis: Optional[str] = None
    medications: List[Medication] = Field(default_factory=list)

    @model_validator(mode="after")
    def _resolve_end(self):
        if self.end_date is None:
            if self.duration_days is None:
                raise ValueError("Provide end_date or duration_days.")
            self.end_date = end_date_for(self.start_date, self.duration_days)
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def to_prescription(self, doctor_id: str) -> Prescription:
        return Prescription(
            doctor_id=doctor_id,
            patient_id=self.patient_id,
            start_date=self.start_date,
            end_date=self.end_date,
            diagnosis=self.diagnosis,
            medications=self.medications,
        )

class DoseEvent(BaseModel):
    id: str
    prescription_id: str
    medication_id: str
    medication_name: str
    dosage: str = ""
    patient_id: str
    slot: TimingSlot
    scheduled_at: datetime  # local wall clock
    status: DoseStatus = "pending"
    taken_at: Optional[datetime] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _taken_at_only_when_taken(self):
        if self.status == "taken" and self.taken_at is None:
            raise ValueError("taken_at is required when status is taken")
        if self.status != "taken" and self.taken_at is not None:
            raise ValueError("taken_at is only allowed when status is taken")
        return self

# ---------------------------
# Patient profile
# ---------------------------
class HistoryItem(BaseModel):
    complication: str
    description: Optional[str] = None

class PatientProfile(BaseModel):
    patient_id: str
    full_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    ongoing_medications: Optional[str] = None
    medical_history: List[HistoryItem] = Field(default_factory=list)

# ---------------------------
# Safety check wire contract
# ---------------------------
class SafetyPatient(BaseModel):
    age: int = Field(..., ge=0)
    gender: str
    consultation_reason: str

class SafetyHistory(BaseModel):
    known_complications: str
    past_medications: str

class SafetyDrug(BaseModel):
    drug_name: str
    dosage: str
    frequency: str

class SafetyCheckRequest(BaseModel):
    patient: SafetyPatient
    history: SafetyHistory
    new_prescriptions: List[SafetyDrug]

class SafetyFlag(BaseModel):
    problematic_drug: str
    issue: str
    explanation: str
    suggested_alternative: str = ""

class SafetyCheckResponse(BaseModel):
    overall_assessment: Literal["Safe", "Caution", "High-Risk"]
    flags: List[SafetyFlag]

class RiskAssessment(BaseModel):
    verdict: RiskVerdict
    flags: List[SafetyFlag] = Field(default_factory=list)
    diagnostic: Optional[str] = None
    raw_assessment: Optional[str] = None

# ---------------------------
# Adherence
# ---------------------------
class AdherenceSummary(BaseModel):
    taken: int
    missed: int
    pending: int
    skipped: int
    total: int
    adherence_percent: int
    avg_delay_minutes: Optional[float] = None

# ---------------------------
# API payloads
# ---------------------------
class DraftRequest(BaseModel):
    draft: DraftPrescription
    profile: Optional[PatientProfile] = None  # falls back to the stored profile

class DraftResponse(BaseModel):
    prescription: Prescription
    safety_request: SafetyCheckRequest
    assessment: RiskAssessment
    next_step: Optional[NextStep] = None
    advisory_note: str = ADVISORY_NOTE

class ConfirmRequest(BaseModel):
    prescription_id: str
    approve: bool = True

class ConfirmResponse(BaseModel):
    prescription: Prescription
    dose_count: int
    next_step: NextStep = "DONE"

class StatusUpdateRequest(BaseModel):
    status: Literal["completed", "cancelled"]

class AdherenceMarkRequest(BaseModel):
    dose_id: str
    status: Literal["taken", "missed", "skipped"]
    notes: Optional[str] = None

class SweepResponse(BaseModel):
    enabled: bool
    marked_missed: int
