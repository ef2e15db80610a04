"""Extract the {intent, reply, data} envelope from a raw LLM completion.

Never raises: anything that isn't a usable JSON object degrades to
intent "unknown" with the raw text as the reply.
"""

import json
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


@dataclass
class ParsedResponse:
    intent: str
    reply: str
    data: dict = field(default_factory=dict)


def _extract_json(raw: str) -> str:
    text = raw.strip()
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    # Tolerate prose around a bare object.
    if not text.startswith("{") and "{" in text and "}" in text:
        return text[text.index("{"): text.rindex("}") + 1]
    return text


def parse_response(raw: str) -> ParsedResponse:
    """Parse an LLM completion. Missing fields fall back one by one."""
    raw = raw or ""
    try:
        parsed = json.loads(_extract_json(raw))
    except (json.JSONDecodeError, ValueError):
        logger.warning("LLM response was not valid JSON, using raw text")
        return ParsedResponse(intent="unknown", reply=raw)

    if not isinstance(parsed, dict):
        logger.warning("LLM response JSON was not an object, using raw text")
        return ParsedResponse(intent="unknown", reply=raw)

    intent = parsed.get("intent")
    reply = parsed.get("reply")
    data = parsed.get("data")
    return ParsedResponse(
        intent=intent if isinstance(intent, str) and intent else "unknown",
        reply=reply if isinstance(reply, str) and reply else raw,
        data=data if isinstance(data, dict) else {},
    )
