import json
import re
from typing import Any, Dict, List

import structlog

from staffplan.utils.errors import JsonRecoveryExhausted

logger = structlog.get_logger(__name__)

DEFAULT_REPAIR_ATTEMPTS = 2

_FENCE_JSON_RE = re.compile(r"```json", re.IGNORECASE)
_LEADING_WRAP_RE = re.compile(r"^[()\s]+")
_TRAILING_WRAP_RE = re.compile(r"[()\s]+$")


def sanitize_json_text(raw: str) -> str:
    """
    Remove code fences and leading/trailing parentheses the model sometimes wraps
    JSON in. Does not try to fix brackets or quotes.
    """
    cleaned = _FENCE_JSON_RE.sub("", raw or "").replace("```", "")
    cleaned = _LEADING_WRAP_RE.sub("", cleaned)
    cleaned = _TRAILING_WRAP_RE.sub("", cleaned)
    return cleaned.strip()


def _repair_instruction(error: str, raw: str) -> Dict[str, str]:
    return {
        "role": "system",
        "content": (
            "Your last output had invalid JSON. Here is the error:\n"
            f"{error}\n\n"
            "Your invalid JSON was:\n"
            f"{raw}\n\n"
            "Please respond ONLY with valid JSON, no code fences, no commentary. "
            "Output must match the schema previously described."
        ),
    }


async def recover_json(
    llm,
    raw_text: str,
    repair_messages: List[Dict[str, Any]],
    max_attempts: int = DEFAULT_REPAIR_ATTEMPTS,
    op: str = "json_repair",
) -> Any:
    """
    Parse `raw_text` as JSON, asking the model to fix its own output on failure.

    `repair_messages` is the conversation that produced `raw_text`; each repair
    call replays it with an extra system message holding the parse error and the
    invalid text. At most `max_attempts` repair calls are made, after which
    JsonRecoveryExhausted is raised with the last raw text and error.
    """
    raw = sanitize_json_text(raw_text)
    attempt = 0

    while True:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            error = str(e)

        if attempt >= max_attempts:
            logger.error(
                "json_recovery_exhausted", op=op, attempts=attempt, parse_error=error, raw_text=raw
            )
            raise JsonRecoveryExhausted(raw, error, attempt)

        attempt += 1
        logger.warning("json_parse_failed", op=op, attempt=attempt, parse_error=error)
        repaired = await llm.repair([*repair_messages, _repair_instruction(error, raw)], op=op)
        raw = sanitize_json_text(repaired)
        logger.debug("json_repair_output", op=op, attempt=attempt, raw_text=raw)
