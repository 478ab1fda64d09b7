import json
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from openai import OpenAI

from config import settings
from .errors import SuggestionServiceError, SuggestionServiceUnavailable
from .models import CreatorContext

logger = logging.getLogger(__name__)

SUGGESTION_AREAS = ("hook", "pacing", "clarity", "audio", "captions", "visual")
SUGGESTION_SEVERITIES = ("high", "med", "low")
MAX_SUGGESTIONS = 5
MAX_SUGGESTION_WORDS = 14
MAX_KEYWORDS = 8
MIN_KEYWORD_LENGTH = 4

_INSTRUCTION_KEYS = ("instruction", "suggestion", "text", "tip", "action", "fix")


def get_openai_client(api_key: str) -> OpenAI:
    """Get OpenAI client for the suggestion service, handling placeholders."""
    if not api_key or "your_" in api_key or api_key == "test-key":
        raise SuggestionServiceUnavailable("OpenAI API key is missing or a placeholder")
    return OpenAI(api_key=api_key, timeout=settings.OPENAI_TIMEOUT_SECONDS, max_retries=1)


def top_keywords(text: str, limit: int = MAX_KEYWORDS) -> List[Tuple[str, int]]:
    """Most frequent transcript tokens of at least four characters."""
    tokens = re.findall(r"[a-z0-9']+", (text or "").lower())
    counts = Counter(token for token in tokens if len(token) >= MIN_KEYWORD_LENGTH)
    return counts.most_common(limit)


def _fmt(value: Any, unit: str = "") -> str:
    if value is None:
        return "n/a"
    return f"{value}{unit}"


def build_digest(metrics: Dict[str, Any], transcript_text: str = "") -> str:
    """Compact text digest of the measured metrics for the prompt."""
    loudness = metrics.get("loudness") or {}
    first_second = metrics.get("firstSecond") or {}
    silences = metrics.get("silences") or []
    keywords = top_keywords(transcript_text)

    lines = [
        f"Duration: {_fmt(metrics.get('durationSec'), 's')}",
        f"Cuts: {metrics.get('cuts', 0)} (avg {_fmt(metrics.get('avgCutSec'), 's')} per shot, "
        f"{metrics.get('first3Cuts', 0)} in first 3s)",
        f"Hook text on screen: {metrics.get('hookText') or 'none'}",
        f"Captions present: {'yes' if metrics.get('captionsPresent') else 'no'}",
        f"Spoken in first 2s: {metrics.get('first2sText') or 'none'}",
        f"Words per second: {_fmt(metrics.get('wordsPerSec'))}",
        f"Silences: {len(silences)} (ratio {_fmt(metrics.get('silenceRatio'))})",
        f"Loudness: mean {_fmt(loudness.get('meanDb'), ' dB')}, peak {_fmt(loudness.get('maxDb'), ' dB')}",
        f"First second luma: avg {_fmt(first_second.get('yavg'))}, contrast {_fmt(first_second.get('contrast'))}",
        "Top transcript keywords: " + (", ".join(f"{word}({count})" for word, count in keywords) or "none"),
    ]
    return "\n".join(lines)


def build_prompt(digest: str, context: CreatorContext) -> str:
    return f"""Creator context:
- niche: {context.niche or '-'}
- tone: {context.tone or '-'}
- goals: {', '.join(context.goals) or '-'}
- pillars: {', '.join(context.pillars) or '-'}

Measured video metrics:
{digest}
"""


SYSTEM_PROMPT = f"""
You are a short-form video editor reviewing one vertical video.
Suggest editing techniques only. Do not suggest new topics or content ideas.

Rules:
- Up to {MAX_SUGGESTIONS} suggestions, most impactful first.
- Each instruction under {MAX_SUGGESTION_WORDS} words.
- area is one of: {', '.join(SUGGESTION_AREAS)}.
- severity is one of: {', '.join(SUGGESTION_SEVERITIES)}.

Return ONLY strict JSON with this shape:
{{"suggestions": [{{"area": "hook", "severity": "high", "instruction": "string"}}]}}
"""


def clip_words(text: str, limit: int = MAX_SUGGESTION_WORDS) -> str:
    words = text.split()
    return " ".join(words[:limit])


def _normalize_tag(value: Any, allowed: Tuple[str, ...]) -> Optional[str]:
    tag = str(value or "").strip().lower()
    if tag == "medium":
        tag = "med"
    return tag if tag in allowed else None


def _render_item(item: Any) -> Optional[str]:
    if isinstance(item, str):
        instruction = item
        area = severity = None
    elif isinstance(item, dict):
        instruction = next((str(item[key]) for key in _INSTRUCTION_KEYS if item.get(key)), "")
        area = _normalize_tag(item.get("area"), SUGGESTION_AREAS)
        severity = _normalize_tag(item.get("severity"), SUGGESTION_SEVERITIES)
    else:
        return None

    # Strip list markers such as "1." or "-"
    instruction = re.sub(r"^\s*(?:[-*•]|\d+[.)])\s*", "", instruction)
    instruction = clip_words(instruction)
    if not instruction:
        return None
    if area and severity:
        return f"[{area}/{severity}] {instruction}"
    if area:
        return f"[{area}] {instruction}"
    return instruction


def parse_suggestions(content: str) -> List[str]:
    """
    Parse the service response into at most five suggestion strings.

    Accepts a list or an object holding `suggestions` (or `items`); each entry
    may be a plain instruction or an object with area/severity subfields.
    """
    try:
        data = json.loads(content)
    except (TypeError, ValueError) as e:
        raise SuggestionServiceError(f"Suggestion response is not JSON: {e}") from e

    if isinstance(data, dict):
        items = data.get("suggestions", data.get("items"))
    else:
        items = data
    if not isinstance(items, list):
        raise SuggestionServiceError("Suggestion response has no suggestions list")

    suggestions = [rendered for rendered in (_render_item(item) for item in items) if rendered]
    if not suggestions:
        raise SuggestionServiceError("Suggestion response contained no usable suggestions")
    return suggestions[:MAX_SUGGESTIONS]


def compose_suggestions(
    metrics: Dict[str, Any],
    transcript_text: str,
    context: CreatorContext,
    api_key: str,
) -> List[str]:
    """
    One round trip to the suggestion service.

    Raises SuggestionServiceUnavailable when not configured and
    SuggestionServiceError when the call fails or the output is unusable.
    """
    client = get_openai_client(api_key)
    prompt = build_prompt(build_digest(metrics, transcript_text), context)

    try:
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=settings.OPENAI_TEMPERATURE,
            max_tokens=600,
        )
        content = response.choices[0].message.content
    except Exception as e:
        logger.error(f"Error in suggestion request: {e}")
        raise SuggestionServiceError(f"Suggestion service call failed: {e}") from e

    suggestions = parse_suggestions(content or "")
    logger.info(f"Suggestion service returned {len(suggestions)} suggestions")
    return suggestions
