from typing import Any, Dict, List, TypedDict

class WorkflowState(TypedDict, total=False):
    # identity (prescription_id doubles as LangGraph thread_id)
    prescription_id: str
    doctor_id: str

    # inputs (json-mode dumps of the pydantic models)
    prescription: Dict[str, Any]
    profile: Dict[str, Any]

    # outputs
    safety_request: Dict[str, Any]
    assessment: Dict[str, Any]
    approval: Dict[str, Any]     # resume payload from the doctor
    dose_count: int

    audit: List[Dict[str, Any]]
