import os

from meditrack.core.env import load_env

load_env()

ADVISORY_PROVIDER = os.getenv("MEDITRACK_ADVISORY_PROVIDER", "openrouter").strip().lower()

OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "meta-llama/llama-3.2-3b-instruct:free")
OPENROUTER_REFERER = os.getenv("OPENROUTER_REFERER", "http://localhost:8000")
OPENROUTER_TITLE = os.getenv("OPENROUTER_TITLE", "MediTrack")

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/api")
OLLAMA_MODEL_SAFETY = os.getenv("OLLAMA_MODEL_SAFETY", "llama3.2")

HF_MODEL_SAFETY = os.getenv("HF_MODEL_SAFETY", "meta-llama/Llama-3.2-3B-Instruct")

ADVISORY_MAX_TOKENS = int(os.getenv("MEDITRACK_ADVISORY_MAX_TOKENS", "600"))
ADVISORY_TEMPERATURE = float(os.getenv("MEDITRACK_ADVISORY_TEMPERATURE", "0.2"))

# unset => transport default (no timeout)
_timeout = os.getenv("MEDITRACK_ADVISORY_TIMEOUT_S", "").strip()
ADVISORY_TIMEOUT_S = float(_timeout) if _timeout else None
