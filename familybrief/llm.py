# familybrief/llm.py
import json
import os
from functools import lru_cache
from typing import Any, Dict, Optional

from openai import OpenAI

from .errors import LLMError, build_error_notice
from .logger import logger

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT_SECONDS = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "30"))


def _normalize_base_url(base_url: Optional[str]) -> str:
    if not base_url:
        return "https://api.openai.com/v1"
    base_url = base_url.strip().rstrip("/")
    if not base_url.startswith("http"):
        base_url = f"https://{base_url}"
    if not base_url.endswith("/v1"):
        base_url = f"{base_url}/v1"
    return base_url


@lru_cache(maxsize=1)
def get_openai() -> OpenAI:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise LLMError("OPENAI_API_KEY is not configured.")

    base_url = _normalize_base_url(os.getenv("OPENAI_BASE_URL"))
    logger.debug(f"[LLM] Using OpenAI base_url={base_url}")
    return OpenAI(api_key=api_key, base_url=base_url, timeout=OPENAI_TIMEOUT_SECONDS)


def complete(system_prompt: str, user_prompt: str) -> str:
    """One chat completion in JSON mode. Raises LLMError on any failure."""
    client = get_openai()
    try:
        logger.debug(f"[LLM] calling {OPENAI_MODEL}...")
        resp = client.chat.completions.create(
            model=OPENAI_MODEL,
            temperature=0.4,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
    except Exception as e:
        notice = build_error_notice(e, {"op": "openai.chat"})
        logger.error(f"[{notice.code}] {notice.debug} (ref={notice.support_id})")
        raise LLMError(f"OpenAI error: {e}") from e

    content = (resp.choices[0].message.content or "") if resp.choices else ""
    if not content.strip():
        raise LLMError("OpenAI returned empty content")
    return content


def parse_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Parse completion text into a dict; None when it is not a JSON object."""
    text = (raw or "").strip()
    if text.startswith("```"):
        parts = text.split("```", 2)
        text = parts[1] if len(parts) > 1 else text
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
