"""Validation and repair of the reasoning model's JSON output.

The model's response is untrusted. Nothing downstream ever sees the raw
dict: ``validate_analysis`` turns it into a closed AnalysisResult with every
field defaulted, range-checked and length-bounded.
"""

import json
import math
import re
from dataclasses import dataclass, field

from cryptoedge.exceptions import InvalidReasoningOutput
from cryptoedge.logging import get_logger
from cryptoedge.models import Direction, RiskLevel, Sentiment

logger = get_logger(__name__)

CONFIDENCE_MIN = 30.0
CONFIDENCE_MAX = 95.0
CONFIDENCE_DEFAULT = 50.0

#: long_score/short_score gap above which the higher side overrides the stated direction.
SCORE_OVERRIDE_MARGIN = 5.0

MAX_ANALYSIS_CHARS = 500
MAX_SUMMARY_CHARS = 300
MAX_KEY_FACTORS = 5
MAX_KEY_FACTOR_CHARS = 100

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass
class AnalysisResult:
    """Validated model analysis. Every field is safe to persist and display."""

    direction: Direction
    confidence: float
    market_sentiment: Sentiment = Sentiment.NEUTRAL
    risk_level: RiskLevel = RiskLevel.MEDIUM
    analysis: str = ""
    key_factors: list[str] = field(default_factory=list)
    technical_summary: str = ""
    suggested_entry: float | None = None
    suggested_stop_loss: float | None = None
    suggested_take_profit: float | None = None
    long_score: float | None = None
    short_score: float | None = None
    direction_overridden: bool = False
    model_version: str | None = None
    token_usage: int | None = None


def _as_number(value: object) -> float | None:
    """Coerce a JSON scalar to a finite float, or None.

    Booleans are rejected (``True`` is an int in Python); numeric strings
    such as ``"72"`` are accepted.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _enum_or_default(enum_cls, value: object, default):
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    return default


def _bounded_text(value: object, limit: int) -> str:
    return value[:limit] if isinstance(value, str) else ""


def _price(value: object) -> float | None:
    number = _as_number(value)
    return number if number is not None and number > 0 else None


def clamp_confidence(value: object) -> float:
    """Clamp any model-reported confidence into [30, 95], one decimal place.

    Missing or non-numeric values fall back to 50.
    """
    number = _as_number(value)
    if number is None:
        number = CONFIDENCE_DEFAULT
    return round(min(CONFIDENCE_MAX, max(CONFIDENCE_MIN, number)), 1)


def reconcile_direction(
    direction: Direction,
    long_score: float | None,
    short_score: float | None,
) -> Direction:
    """Override the stated direction when the model's own scores disagree with it.

    Only applies when both scores are present. If they differ by more than
    SCORE_OVERRIDE_MARGIN the higher side wins, whatever was stated.
    """
    if long_score is None or short_score is None:
        return direction
    if abs(long_score - short_score) <= SCORE_OVERRIDE_MARGIN:
        return direction
    return Direction.LONG if long_score > short_score else Direction.SHORT


def validate_analysis(parsed: dict) -> AnalysisResult:
    """Sanitise a parsed model response into an AnalysisResult."""
    stated = _enum_or_default(Direction, parsed.get("direction"), Direction.HOLD)
    long_score = _as_number(parsed.get("long_score"))
    short_score = _as_number(parsed.get("short_score"))
    direction = reconcile_direction(stated, long_score, short_score)

    if direction != stated:
        logger.info(
            "analysis_direction_overridden",
            stated=stated.value,
            resolved=direction.value,
            long_score=long_score,
            short_score=short_score,
        )

    raw_factors = parsed.get("key_factors")
    key_factors = (
        [str(f)[:MAX_KEY_FACTOR_CHARS] for f in raw_factors[:MAX_KEY_FACTORS]]
        if isinstance(raw_factors, list)
        else []
    )

    return AnalysisResult(
        direction=direction,
        confidence=clamp_confidence(parsed.get("confidence")),
        market_sentiment=_enum_or_default(
            Sentiment, parsed.get("market_sentiment"), Sentiment.NEUTRAL
        ),
        risk_level=_enum_or_default(RiskLevel, parsed.get("risk_level"), RiskLevel.MEDIUM),
        analysis=_bounded_text(parsed.get("analysis"), MAX_ANALYSIS_CHARS),
        key_factors=key_factors,
        technical_summary=_bounded_text(parsed.get("technical_summary"), MAX_SUMMARY_CHARS),
        suggested_entry=_price(parsed.get("suggested_entry")),
        suggested_stop_loss=_price(parsed.get("suggested_stop_loss")),
        suggested_take_profit=_price(parsed.get("suggested_take_profit")),
        long_score=long_score,
        short_score=short_score,
        direction_overridden=direction != stated,
    )


def parse_response(raw: str) -> AnalysisResult:
    """Parse the model's message content and validate it.

    Markdown code fences around the JSON are tolerated.

    Raises:
        InvalidReasoningOutput: content is empty, not JSON, or not a JSON object.
    """
    text = (raw or "").strip()
    if text.startswith("```"):
        text = _FENCE_RE.sub("", text).strip()
    if not text:
        raise InvalidReasoningOutput("empty response content")

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidReasoningOutput(f"invalid JSON from model: {e.msg}") from e

    if not isinstance(parsed, dict):
        raise InvalidReasoningOutput(
            f"expected JSON object, got {type(parsed).__name__}"
        )

    return validate_analysis(parsed)
