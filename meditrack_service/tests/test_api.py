import pytest

from conftest import DOCTOR, PATIENT, SYSTEM

SAFETY_BODY = {
    "patient": {"age": 42, "gender": "Male", "consultation_reason": "Sinusitis"},
    "history": {"known_complications": "None provided", "past_medications": "None provided"},
    "new_prescriptions": [{"drug_name": "Amoxicillin", "dosage": "500mg", "frequency": "Morning, Night"}],
}

DRAFT = {
    "draft": {
        "patient_id": "pat-1",
        "start_date": "2025-01-01",
        "duration_days": 2,
        "diagnosis": "Sinusitis",
        "medications": [
            {"name": "Amoxicillin", "dosage": "500mg", "instructions": "With food", "timing": ["night", "morning"]}
        ],
    }
}


@pytest.fixture
def linked(client):
    r = client.post("/patients/pat-1/doctors/doc-1", headers=DOCTOR)
    assert r.status_code == 200
    return client


def _draft_and_confirm(client, approve=True):
    r = client.post("/prescriptions/draft", json=DRAFT, headers=DOCTOR)
    assert r.status_code == 200, r.text
    rx_id = r.json()["prescription"]["id"]
    r = client.post("/prescriptions/confirm", json={"prescription_id": rx_id, "approve": approve}, headers=DOCTOR)
    assert r.status_code == 200, r.text
    return rx_id, r.json()


# ---------------------------
# /run-safety-check
# ---------------------------
def test_run_safety_check_returns_wire_reply(client, advisory):
    advisory.reply = '```json\n{"overall_assessment":"Caution","flags":[]}\n```'

    r = client.post("/run-safety-check", json=SAFETY_BODY)

    assert r.status_code == 200
    assert r.json() == {"overall_assessment": "Caution", "flags": []}
    assert "- Amoxicillin: 500mg, Morning, Night" in advisory.prompts[0]


def test_run_safety_check_failure_has_detail(client, advisory):
    advisory.reply = "I cannot help with that."

    r = client.post("/run-safety-check", json=SAFETY_BODY)

    assert r.status_code == 502
    assert "invalid JSON" in r.json()["detail"]


def test_run_safety_check_rejects_incomplete_body(client, advisory):
    r = client.post("/run-safety-check", json={"patient": SAFETY_BODY["patient"]})

    assert r.status_code == 422
    assert advisory.prompts == []


def test_run_safety_check_honours_internal_secret(client, advisory, monkeypatch):
    monkeypatch.setenv("INTERNAL_SERVICE_SECRET", "s3cret")

    assert client.post("/run-safety-check", json=SAFETY_BODY).status_code == 401
    r = client.post("/run-safety-check", json=SAFETY_BODY, headers={"X-Internal-Key": "s3cret"})
    assert r.status_code == 200


def test_assess_always_answers(client, advisory):
    advisory.reply = '{"overall_assessment": "Unsure", "flags": []}'

    r = client.post("/safety-check/assess", json=SAFETY_BODY)

    assert r.status_code == 200
    assert r.json()["verdict"] == "ERROR"



def test_malformed_upstream_reply_is_handled_by_both_endpoints(client, monkeypatch):
    class _Resp:
        status_code = 200
        text = ""

        def json(self):
            return {"choices": [{"message": {"content": [{"type": "text", "text": "Safe"}]}}]}

    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    monkeypatch.setattr("meditrack.services.advisory_client.ADVISORY_PROVIDER", "openrouter")
    monkeypatch.setattr("meditrack.services.advisory_client.requests.post", lambda *a, **k: _Resp())

    r = client.post("/safety-check/assess", json=SAFETY_BODY)
    assert r.status_code == 200
    assert r.json()["verdict"] == "ERROR"

    r = client.post("/run-safety-check", json=SAFETY_BODY)
    assert r.status_code == 502
    assert "not text" in r.json()["detail"]

# ---------------------------
# prescription workflow
# ---------------------------
def test_draft_runs_safety_check_with_stored_history(linked, advisory):
    profile = {
        "patient_id": "pat-1",
        "gender": "Female",
        "medical_history": [{"complication": "Penicillin allergy", "description": "rash"}],
    }
    assert linked.put("/patients/pat-1/profile", json=profile, headers=PATIENT).status_code == 200
    advisory.reply = (
        '{"overall_assessment": "High-Risk", "flags": [{"problematic_drug": "Amoxicillin", '
        '"issue": "Allergy", "explanation": "Penicillin class", "suggested_alternative": "Azithromycin"}]}'
    )

    r = linked.post("/prescriptions/draft", json=DRAFT, headers=DOCTOR)

    assert r.status_code == 200
    body = r.json()
    assert body["next_step"] == "NEED_APPROVAL"
    assert body["prescription"]["status"] == "pending_review"
    assert body["prescription"]["end_date"] == "2025-01-03"
    assert body["safety_request"]["history"]["known_complications"] == "Penicillin allergy: rash"
    assert body["safety_request"]["patient"]["gender"] == "Female"
    assert body["assessment"]["verdict"] == "HIGH_RISK"
    assert body["assessment"]["flags"][0]["suggested_alternative"] == "Azithromycin"


def test_draft_without_profile_reads_none_provided(linked, advisory):
    r = linked.post("/prescriptions/draft", json=DRAFT, headers=DOCTOR)

    assert r.json()["safety_request"]["history"]["known_complications"] == "None provided"


def test_draft_upstream_error_still_reaches_approval(linked, advisory):
    from meditrack.services.advisory_client import AdvisoryError

    advisory.error = AdvisoryError("Advisory service unreachable: timeout")

    r = linked.post("/prescriptions/draft", json=DRAFT, headers=DOCTOR)

    assert r.status_code == 200
    assert r.json()["assessment"]["verdict"] == "ERROR"
    assert r.json()["next_step"] == "NEED_APPROVAL"


def test_confirm_materializes_dose_calendar(linked, advisory):
    rx_id, confirmed = _draft_and_confirm(linked)

    assert confirmed["prescription"]["status"] == "active"
    assert confirmed["dose_count"] == 6

    r = linked.get(f"/prescriptions/{rx_id}/doses", headers=PATIENT)
    assert r.status_code == 200
    assert [d["scheduled_at"] for d in r.json()] == [
        "2025-01-01T08:00:00",
        "2025-01-01T20:00:00",
        "2025-01-02T08:00:00",
        "2025-01-02T20:00:00",
        "2025-01-03T08:00:00",
        "2025-01-03T20:00:00",
    ]
    assert {d["status"] for d in r.json()} == {"pending"}


def test_reject_cancels_without_doses(linked, advisory):
    rx_id, confirmed = _draft_and_confirm(linked, approve=False)

    assert confirmed["prescription"]["status"] == "cancelled"
    assert confirmed["dose_count"] == 0
    assert linked.get(f"/prescriptions/{rx_id}/doses", headers=DOCTOR).json() == []

    audit = linked.get(f"/prescriptions/{rx_id}/audit", headers=DOCTOR).json()["audit"]
    assert [a["event"] for a in audit] == [
        "safety_request.built",
        "safety_check.done",
        "approval.resumed",
        "finalize.cancelled",
    ]


def test_confirm_twice_conflicts(linked, advisory):
    rx_id, _ = _draft_and_confirm(linked)

    r = linked.post("/prescriptions/confirm", json={"prescription_id": rx_id}, headers=DOCTOR)

    assert r.status_code == 409


def test_empty_medication_set_blocks_draft(linked, advisory):
    body = {"draft": {**DRAFT["draft"], "medications": []}}

    r = linked.post("/prescriptions/draft", json=body, headers=DOCTOR)

    assert r.status_code == 400
    assert advisory.prompts == []
    assert linked.get("/prescriptions", headers=DOCTOR).json() == []


def test_empty_timing_and_bad_dates_are_rejected(linked, advisory):
    no_timing = {"draft": {**DRAFT["draft"], "medications": [{"name": "A", "dosage": "1", "timing": []}]}}
    backwards = {"draft": {**DRAFT["draft"], "duration_days": None, "end_date": "2024-12-31"}}

    assert linked.post("/prescriptions/draft", json=no_timing, headers=DOCTOR).status_code == 422
    assert linked.post("/prescriptions/draft", json=backwards, headers=DOCTOR).status_code == 422
    assert advisory.prompts == []


def test_unlinked_doctor_cannot_prescribe(client, advisory):
    r = client.post("/prescriptions/draft", json=DRAFT, headers=DOCTOR)

    assert r.status_code == 403


def test_patient_cannot_draft(linked, advisory):
    assert linked.post("/prescriptions/draft", json=DRAFT, headers=PATIENT).status_code == 403


def test_missing_identity_headers(client):
    assert client.get("/prescriptions").status_code == 422
    assert client.get("/prescriptions", headers={"X-User-Id": "x", "X-User-Role": "admin"}).status_code == 401


def test_status_update_and_delete_cascade(linked, advisory):
    rx_id, _ = _draft_and_confirm(linked)

    r = linked.patch(f"/prescriptions/{rx_id}/status", json={"status": "completed"}, headers=DOCTOR)
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    r = linked.patch(f"/prescriptions/{rx_id}/status", json={"status": "cancelled"}, headers=DOCTOR)
    assert r.status_code == 409

    assert linked.delete(f"/prescriptions/{rx_id}", headers=PATIENT).status_code == 403
    r = linked.delete(f"/prescriptions/{rx_id}", headers=DOCTOR)
    assert r.json()["doses_deleted"] == 6
    assert linked.get(f"/prescriptions/{rx_id}", headers=DOCTOR).status_code == 404
    assert linked.get("/adherence/doses", params={"patient_id": "pat-1"}, headers=PATIENT).json() == []


# ---------------------------
# adherence
# ---------------------------
def test_patient_marks_doses_and_sees_summary(linked, advisory):
    _draft_and_confirm(linked)
    doses = linked.get("/adherence/doses", params={"patient_id": "pat-1", "day": "2025-01-01"}, headers=PATIENT).json()
    assert len(doses) == 2

    r = linked.post("/adherence/mark", json={"dose_id": doses[0]["id"], "status": "taken"}, headers=PATIENT)
    assert r.status_code == 200
    assert r.json()["status"] == "taken"
    assert r.json()["taken_at"] is not None

    again = linked.post("/adherence/mark", json={"dose_id": doses[0]["id"], "status": "missed"}, headers=PATIENT)
    assert again.status_code == 409

    r = linked.post("/adherence/mark", json={"dose_id": doses[1]["id"], "status": "missed"}, headers=PATIENT)
    assert r.status_code == 200

    day = linked.get(
        "/adherence/summary",
        params={"patient_id": "pat-1", "start": "2025-01-01", "end": "2025-01-01"},
        headers=PATIENT,
    ).json()
    assert (day["taken"], day["missed"], day["total"], day["adherence_percent"]) == (1, 1, 2, 50)

    everything = linked.get("/adherence/summary", params={"patient_id": "pat-1"}, headers=DOCTOR).json()
    assert (everything["pending"], everything["total"], everything["adherence_percent"]) == (4, 6, 17)


def test_skip_is_reserved_for_system(linked, advisory):
    _draft_and_confirm(linked)
    dose_id = linked.get("/adherence/doses", params={"patient_id": "pat-1"}, headers=PATIENT).json()[0]["id"]

    r = linked.post("/adherence/mark", json={"dose_id": dose_id, "status": "skipped"}, headers=PATIENT)
    assert r.status_code == 403

    r = linked.post("/adherence/mark", json={"dose_id": dose_id, "status": "skipped"}, headers=SYSTEM)
    assert r.status_code == 200
    assert r.json()["status"] == "skipped"


def test_other_patients_cannot_touch_doses(linked, advisory):
    _draft_and_confirm(linked)
    dose_id = linked.get("/adherence/doses", params={"patient_id": "pat-1"}, headers=PATIENT).json()[0]["id"]
    intruder = {"X-User-Id": "pat-2", "X-User-Role": "patient"}

    assert linked.post("/adherence/mark", json={"dose_id": dose_id, "status": "taken"}, headers=intruder).status_code == 404
    assert linked.get("/adherence/doses", params={"patient_id": "pat-1"}, headers=intruder).status_code == 403
    assert linked.post("/adherence/mark", json={"dose_id": dose_id, "status": "taken"}, headers=DOCTOR).status_code == 403


def test_overdue_lists_past_pending_doses(linked, advisory):
    _draft_and_confirm(linked)

    r = linked.get("/adherence/overdue", params={"patient_id": "pat-1"}, headers=PATIENT)

    # the 2025 calendar is entirely in the past
    assert len(r.json()) == 6
    assert {d["status"] for d in r.json()} == {"pending"}


def test_sweep_respects_policy(linked, advisory, monkeypatch):
    _draft_and_confirm(linked)

    r = linked.post("/adherence/sweep", headers=SYSTEM)
    assert r.json() == {"enabled": False, "marked_missed": 0}

    monkeypatch.setattr("meditrack.api.routes_adherence.AUTO_MISS_AFTER_MINUTES", 60)
    r = linked.post("/adherence/sweep", headers=SYSTEM)
    assert r.json() == {"enabled": True, "marked_missed": 6}

    summary = linked.get("/adherence/summary", params={"patient_id": "pat-1"}, headers=PATIENT).json()
    assert (summary["missed"], summary["adherence_percent"]) == (6, 0)

    assert linked.post("/adherence/sweep", headers=PATIENT).status_code == 403
