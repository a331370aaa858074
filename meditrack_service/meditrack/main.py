from fastapi import FastAPI
from meditrack.core.env import load_env
from meditrack.core.logging_config import configure_logging
from meditrack.api.routes_adherence import router as adherence_router
from meditrack.api.routes_patients import router as patients_router
from meditrack.api.routes_prescriptions import router as prescriptions_router
from meditrack.api.routes_safety import router as safety_router

load_env()
configure_logging()

app = FastAPI(title="MediTrack (Prescriptions + Adherence)", version="1.0")

app.include_router(safety_router)
app.include_router(prescriptions_router)
app.include_router(patients_router)
app.include_router(adherence_router)

@app.get("/health")
def health():
    return {"ok": True}
@app.get("/")
def root():
    return {"ok": True, "service": "MediTrack AI safety check + adherence"}
