"""LLM client for OpenAI-compatible chat completion endpoints.

One call = one request.  Retries belong to the caller (see
``pipeline.retry``) so every failure here surfaces immediately as an
``ExtractionTransportError`` or ``ExtractionFormatError``.
"""

import json
import re
import time
import logging

import httpx

from tnprop.config import (
    LLM_BASE_URL, LLM_API_KEY, LLM_MODEL, LLM_TIMEOUT,
    LLM_MAX_OUTPUT_TOKENS, LLM_TEMPERATURE,
)
from tnprop.pipeline.errors import ExtractionFormatError, ExtractionTransportError

logger = logging.getLogger(__name__)

# Leading ```json / ``` fence and trailing ``` fence
_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?```$")


def is_llm_configured() -> bool:
    """True when an API key is available for the model endpoint."""
    return bool(LLM_API_KEY)


async def call_llm(
    system_prompt: str,
    user_prompt: str,
    temperature: float = LLM_TEMPERATURE,
    max_output_tokens: int = LLM_MAX_OUTPUT_TOKENS,
    task_label: str = "",
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Send one chat completion request and return the text payload.

    Args:
        system_prompt: System message (task and field semantics)
        user_prompt: User message (rules + document text)
        temperature: Sampling temperature (0 for extraction)
        max_output_tokens: Upper bound on generated tokens
        task_label: Human-readable label used in log lines
        transport: Optional httpx transport (tests inject a MockTransport)

    Raises:
        ExtractionTransportError: network, timeout, quota or auth failure
        ExtractionFormatError: the response carries no message content
    """
    label = task_label or "LLM Call"
    body = {
        "model": LLM_MODEL,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": temperature,
        "max_tokens": max_output_tokens,
    }
    headers = {"Authorization": f"Bearer {LLM_API_KEY}"} if LLM_API_KEY else {}

    prompt_chars = len(system_prompt) + len(user_prompt)
    logger.debug(f"[{label}] Sending {prompt_chars:,} chars to {LLM_MODEL}")
    t0 = time.time()

    try:
        # Per-call client: each concurrent segment gets its own connection pool
        async with httpx.AsyncClient(
            base_url=LLM_BASE_URL, timeout=LLM_TIMEOUT, transport=transport,
        ) as client:
            response = await client.post("/chat/completions", json=body, headers=headers)
            response.raise_for_status()
            result = response.json()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        detail = e.response.text[:300]
        raise ExtractionTransportError(f"HTTP {status} from model endpoint: {detail}", status_code=status) from e
    except httpx.TimeoutException as e:
        raise ExtractionTransportError(f"Model request timed out after {LLM_TIMEOUT:.0f}s") from e
    except httpx.HTTPError as e:
        raise ExtractionTransportError(f"Model request failed: {e}") from e
    except ValueError as e:
        # response.json() on a non-JSON body
        raise ExtractionFormatError(f"Model endpoint returned a non-JSON body: {e}") from e

    elapsed = time.time() - t0
    try:
        content = result["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    if not content:
        raise ExtractionFormatError("No response content from model")

    usage = result.get("usage") or {}
    logger.info(
        f"[{label}] {usage.get('completion_tokens', len(content) // 4)} tokens "
        f"in {elapsed:.1f}s ({len(content):,} chars)"
    )
    return content


def strip_code_fences(text: str) -> str:
    """Remove an optional Markdown code fence wrapped around the payload."""
    text = text.strip()
    text = _FENCE_OPEN_RE.sub("", text, count=1)
    text = _FENCE_CLOSE_RE.sub("", text, count=1)
    return text.strip()


def parse_json_array(text: str) -> list:
    """Parse a model payload that must be a JSON array.

    Raises:
        ExtractionFormatError: not valid JSON, or valid JSON but not an array
    """
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        raise ExtractionFormatError("Empty response from model")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExtractionFormatError(f"Model response is not valid JSON: {e}") from e
    if not isinstance(parsed, list):
        raise ExtractionFormatError(
            f"Model response is not an array (got {type(parsed).__name__})"
        )
    return parsed


async def check_llm_status(transport: httpx.AsyncBaseTransport | None = None) -> dict:
    """Check that the model endpoint is reachable and the model is listed.

    Results are cached for 120 seconds to avoid redundant HTTP calls from
    health probes.
    """
    global _llm_status_cache, _llm_status_ts
    now = time.time()
    if _llm_status_cache is not None and (now - _llm_status_ts) < 120:
        return _llm_status_cache

    if not is_llm_configured():
        return {"status": "unconfigured", "model": LLM_MODEL}

    try:
        async with httpx.AsyncClient(base_url=LLM_BASE_URL, timeout=10, transport=transport) as client:
            resp = await client.get("/models", headers={"Authorization": f"Bearer {LLM_API_KEY}"})
            resp.raise_for_status()
            models = [m.get("id", "") for m in resp.json().get("data", [])]
            result = {
                "status": "online",
                "model": LLM_MODEL,
                "model_available": LLM_MODEL in models,
            }
            _llm_status_cache = result
            _llm_status_ts = now
            return result
    except (httpx.HTTPError, ValueError) as e:
        return {"status": "offline", "model": LLM_MODEL, "error": str(e)}


# Cache for check_llm_status
_llm_status_cache: dict | None = None
_llm_status_ts: float = 0.0
