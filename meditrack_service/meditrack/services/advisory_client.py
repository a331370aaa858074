import logging
import os
from typing import Any, Dict, List, Optional

import requests
from huggingface_hub import InferenceClient

from meditrack.core.llm_config import (
    ADVISORY_MAX_TOKENS,
    ADVISORY_PROVIDER,
    ADVISORY_TEMPERATURE,
    ADVISORY_TIMEOUT_S,
    HF_MODEL_SAFETY,
    OLLAMA_BASE_URL,
    OLLAMA_MODEL_SAFETY,
    OPENROUTER_BASE_URL,
    OPENROUTER_MODEL,
    OPENROUTER_REFERER,
    OPENROUTER_TITLE,
)

logger = logging.getLogger(__name__)

class AdvisoryError(RuntimeError):
    pass

def _messages(prompt: str) -> List[Dict[str, str]]:
    return [{"role": "user", "content": prompt}]

def _post(url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    try:
        r = requests.post(url, json=payload, headers=headers, timeout=ADVISORY_TIMEOUT_S)
    except requests.RequestException as e:
        raise AdvisoryError(f"Advisory service unreachable: {e}") from e

    if r.status_code >= 400:
        raise AdvisoryError(f"Advisory service error: {r.status_code} - {r.text[:300]}")
    try:
        data = r.json()
    except ValueError as e:
        raise AdvisoryError("Advisory service returned a non-JSON body.") from e
    if not isinstance(data, dict):
        raise AdvisoryError(f"Advisory service returned {type(data).__name__}, expected a JSON object.")
    return data

def _reply_text(content: Any) -> str:
    if content is None:
        return ""
    if not isinstance(content, str):
        raise AdvisoryError(f"Advisory reply content is not text: {type(content).__name__}.")
    return content.strip()

def _first_choice(choices: Any) -> Any:
    if not isinstance(choices, list) or not choices:
        raise AdvisoryError("Advisory reply has no choices.")
    return choices[0]

def _openrouter_chat(prompt: str) -> str:
    # read key at call time so config.env edits apply without a restart
    api_key = os.getenv("OPENROUTER_API_KEY", "").strip()
    if not api_key:
        raise AdvisoryError("OPENROUTER_API_KEY is missing. Set it in config.env and restart.")

    data = _post(
        f"{OPENROUTER_BASE_URL}/chat/completions",
        {
            "model": OPENROUTER_MODEL,
            "messages": _messages(prompt),
            "max_tokens": ADVISORY_MAX_TOKENS,
        },
        headers={
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": OPENROUTER_REFERER,
            "X-Title": OPENROUTER_TITLE,
            "Content-Type": "application/json",
        },
    )
    choice = _first_choice(data.get("choices"))
    message = choice.get("message") if isinstance(choice, dict) else None
    if not isinstance(message, dict):
        raise AdvisoryError("Advisory reply has no message.")
    return _reply_text(message.get("content"))

def _ollama_chat(prompt: str) -> str:
    data = _post(
        f"{OLLAMA_BASE_URL}/chat",
        {
            "model": OLLAMA_MODEL_SAFETY,
            "messages": _messages(prompt),
            "stream": False,
            "options": {"temperature": ADVISORY_TEMPERATURE},
        },
    )
    message = data.get("message")
    if not isinstance(message, dict):
        raise AdvisoryError("Advisory reply has no message.")
    return _reply_text(message.get("content"))

def _hf_chat(prompt: str) -> str:
    token = os.getenv("HF_TOKEN", "").strip()
    if not token:
        raise AdvisoryError("HF_TOKEN is missing. Set it in config.env and restart.")
    provider = os.getenv("HF_PROVIDER", "auto").strip() or "auto"

    client = InferenceClient(provider=provider, api_key=token, timeout=ADVISORY_TIMEOUT_S)
    try:
        out = client.chat_completion(
            model=HF_MODEL_SAFETY,
            messages=_messages(prompt),
            temperature=ADVISORY_TEMPERATURE,
            max_tokens=ADVISORY_MAX_TOKENS,
        )
    except Exception as e:
        # huggingface_hub raises a mix of HTTP/provider errors
        raise AdvisoryError(f"Advisory service error: {e}") from e
    choice = _first_choice(list(getattr(out, "choices", None) or []))
    message = getattr(choice, "message", None)
    return _reply_text(getattr(message, "content", None))

_PROVIDERS = {
    "openrouter": _openrouter_chat,
    "ollama": _ollama_chat,
    "huggingface": _hf_chat,
}

def chat_completion(prompt: str, provider: Optional[str] = None) -> str:
    """
    One outbound chat call, no retry. Returns the assistant text.
    """
    name = (provider or ADVISORY_PROVIDER).lower()
    call = _PROVIDERS.get(name)
    if call is None:
        raise AdvisoryError(f"Unknown advisory provider '{name}'.")

    logger.info("Calling advisory provider %s", name)
    text = call(prompt)
    if not text:
        raise AdvisoryError("Empty AI response")
    return text
