from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd
import requests
import streamlit as st
from dotenv import load_dotenv

load_dotenv()

st.set_page_config(page_title="MediTrack Demo", layout="wide")

# ---------------------------
# Config
# ---------------------------
DEFAULT_API_BASE = "http://127.0.0.1:8000"
API_BASE = st.sidebar.text_input("API Base URL", value=DEFAULT_API_BASE)
USER_ID = st.sidebar.text_input("X-User-Id", value="doc-001")
ROLE = st.sidebar.radio("X-User-Role", ["doctor", "patient", "system"], index=0)

SLOTS = ["morning", "afternoon", "night"]
VERDICT_STYLE = {"SAFE": st.success, "WARNING": st.warning, "HIGH_RISK": st.error, "ERROR": st.error}

# ---------------------------
# Helpers (API)
# ---------------------------
def _headers() -> Dict[str, str]:
    return {"X-User-Id": USER_ID, "X-User-Role": ROLE}

def api_call(method: str, path: str, payload: Optional[Dict[str, Any]] = None,
             params: Optional[Dict[str, Any]] = None) -> Any:
    url = f"{API_BASE}{path}"
    r = requests.request(method, url, json=payload, params=params or {}, headers=_headers(), timeout=60)
    if r.status_code >= 400:
        raise RuntimeError(f"{r.status_code} {r.text}")
    return r.json()

def meds_from_editor(df: pd.DataFrame) -> List[Dict[str, Any]]:
    meds = []
    for row in df.fillna("").to_dict(orient="records"):
        if not str(row.get("name", "")).strip():
            continue
        meds.append({
            "name": row["name"],
            "dosage": str(row.get("dosage", "")),
            "instructions": str(row.get("instructions", "")),
            "timing": [s for s in SLOTS if bool(row.get(s))],
        })
    return meds

# ---------------------------
# Session state
# ---------------------------
for key in ("draft", "confirmed"):
    if key not in st.session_state:
        st.session_state[key] = None

st.title("💊 MediTrack: Prescription Safety + Adherence Demo")

doctor_tab, patient_tab = st.tabs(["Doctor", "Patient"])

# ---------------------------
# Doctor flow
# ---------------------------
with doctor_tab:
    patient_id = st.text_input("patient_id", value="pat-001")

    if st.button("🔗 Link patient to me"):
        try:
            st.json(api_call("POST", f"/patients/{patient_id}/doctors/{USER_ID}"))
        except Exception as e:
            st.error(str(e))

    st.subheader("1) Draft prescription")
    col1, col2 = st.columns(2)
    with col1:
        start_date = st.date_input("Start date", value=date.today())
        duration_days = st.number_input("Duration (days)", min_value=0, value=7)
    with col2:
        diagnosis = st.text_input("Diagnosis", value="Bacterial infection")

    if "meds_df" not in st.session_state:
        st.session_state["meds_df"] = pd.DataFrame([
            {"name": "Amoxicillin", "dosage": "500mg", "instructions": "Take with food",
             "morning": True, "afternoon": False, "night": True},
        ])
    meds_df = st.data_editor(st.session_state["meds_df"], num_rows="dynamic", use_container_width=True)

    if st.button("🛡️ Run safety check (/prescriptions/draft)"):
        payload = {
            "draft": {
                "patient_id": patient_id,
                "start_date": start_date.isoformat(),
                "duration_days": int(duration_days),
                "diagnosis": diagnosis or None,
                "medications": meds_from_editor(meds_df),
            }
        }
        try:
            st.session_state.draft = api_call("POST", "/prescriptions/draft", payload)
            st.session_state.confirmed = None
        except Exception as e:
            st.error(str(e))

    draft = st.session_state.draft
    if draft:
        st.subheader("2) Safety check result")
        assessment = draft["assessment"]
        VERDICT_STYLE[assessment["verdict"]](f"Verdict: {assessment['verdict']}")
        if assessment.get("diagnostic"):
            st.caption(assessment["diagnostic"])
        if assessment.get("flags"):
            st.dataframe(pd.DataFrame(assessment["flags"]), use_container_width=True)
        st.caption(draft["advisory_note"])

        colA, colB = st.columns(2)
        for col, approve, label in ((colA, True, "✅ Confirm"), (colB, False, "❌ Reject")):
            with col:
                if st.button(label, disabled=draft.get("next_step") != "NEED_APPROVAL"):
                    try:
                        st.session_state.confirmed = api_call("POST", "/prescriptions/confirm", {
                            "prescription_id": draft["prescription"]["id"],
                            "approve": approve,
                        })
                        draft["next_step"] = "DONE"
                    except Exception as e:
                        st.error(str(e))

    if st.session_state.confirmed:
        st.subheader("3) Finalized")
        st.json(st.session_state.confirmed)

# ---------------------------
# Patient flow
# ---------------------------
with patient_tab:
    me = st.text_input("patient_id (me)", value=USER_ID if ROLE == "patient" else "pat-001")
    day = st.date_input("Day", value=date.today(), key="patient_day")

    try:
        doses = api_call("GET", "/adherence/doses", params={"patient_id": me, "day": day.isoformat()})
    except Exception as e:
        doses = []
        st.info(str(e))

    if doses:
        df = pd.DataFrame(doses)[["id", "medication_name", "dosage", "slot", "scheduled_at", "status", "taken_at"]]
        st.dataframe(df, use_container_width=True)

        pending = {f"{d['medication_name']} @ {d['scheduled_at'][11:16]}": d["id"] for d in doses if d["status"] == "pending"}
        if pending:
            label = st.selectbox("Pending dose", list(pending.keys()))
            colx, coly = st.columns(2)
            for col, status in ((colx, "taken"), (coly, "missed")):
                with col:
                    if st.button(f"Mark {status}"):
                        try:
                            api_call("POST", "/adherence/mark", {"dose_id": pending[label], "status": status})
                            st.rerun()
                        except Exception as e:
                            st.error(str(e))
    else:
        st.caption("No doses scheduled for this day.")

    if st.button("📊 Adherence summary"):
        try:
            st.json(api_call("GET", "/adherence/summary", params={
                "patient_id": me, "start": day.isoformat(), "end": day.isoformat(),
            }))
        except Exception as e:
            st.error(str(e))
