# meditrack/services/safety_prompt.py
from meditrack.schemas.models import SafetyCheckRequest

SAFETY_SYSTEM_PROMPT = "You are a clinical pharmacist. Analyze this prescription for safety."

RESPONSE_FORMAT = (
    "Return ONLY valid JSON in this exact format:\n"
    "{\n"
    '  "overall_assessment": "Safe" or "Caution" or "High-Risk",\n'
    '  "flags": [\n'
    "    {\n"
    '      "problematic_drug": "Drug name",\n'
    '      "issue": "Short issue",\n'
    '      "explanation": "Why it\'s a problem",\n'
    '      "suggested_alternative": "Alternative or none"\n'
    "    }\n"
    "  ]\n"
    "}\n"
    "If safe, return empty flags array."
)

def render_safety_prompt(req: SafetyCheckRequest) -> str:
    drugs = "\n".join(f"- {d.drug_name}: {d.dosage}, {d.frequency}" for d in req.new_prescriptions)
    return (
        f"{SAFETY_SYSTEM_PROMPT}\n\n"
        "PATIENT:\n"
        f"- Age: {req.patient.age}\n"
        f"- Gender: {req.patient.gender}\n"
        f"- Reason: {req.patient.consultation_reason}\n\n"
        "HISTORY:\n"
        f"- Complications: {req.history.known_complications}\n"
        f"- Past Meds: {req.history.past_medications}\n\n"
        "NEW PRESCRIPTION:\n"
        f"{drugs}\n\n"
        f"{RESPONSE_FORMAT}"
    )
