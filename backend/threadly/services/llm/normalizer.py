"""
Response Normalization

Treats every adapter reply as untrusted input and turns it into a valid
ThreadlyResponse:
- strips Markdown fences and surrounding prose
- parses JSON, repairing invalid escape sequences once
- repairs each field with a validate-or-default rule
- clamps enum values, caps lists, and pads/truncates strategies to three

Nothing in this module raises on bad input. A reply that cannot be salvaged
yields the safe-default response, which ``is_degraded`` recognizes.
"""

import json
import re
from typing import Any

import structlog

from threadly.services.llm.models import (
    Analysis,
    RiskLevel,
    Scenario,
    Simulator,
    StrategyResponse,
    StrategyType,
    ThreadlyResponse,
    Urgency,
)

logger = structlog.get_logger()

STRATEGY_COUNT = 3
MAX_KEY_POINTS = 5

# Strategy type assigned to a position when the model's value is unusable.
STRATEGY_ROTATION = (
    StrategyType.RECOMMENDED,
    StrategyType.BOLD,
    StrategyType.SAFE,
    StrategyType.CAUTION,
)

# ── Fallback policy ───────────────────────────────────────────────────────────
# Every field's default lives here.

FALLBACK_KEY_POINTS = ("Unable to extract key points",)

ANALYSIS_FALLBACKS = {
    "sentiment": "neutral",
    "dynamics": "unclear dynamics",
    "urgency": Urgency.MEDIUM,
    "urgencyReasoning": "Assessment based on available context",
}

# Used for individual fields of a strategy the model did return.
STRATEGY_FIELD_FALLBACKS = {
    "replyText": "I appreciate your message.",
    "predictedOutcome": "Neutral outcome expected",
    "riskLevel": RiskLevel.MEDIUM,
    "riskExplanation": "Balanced risk assessment",
    "reasoning": "Response designed for balanced approach",
    "followUp": "Follow up based on their response",
}

SIMULATOR_FALLBACKS = {
    "theirResponse": "Sure, I understand your perspective.",
    "yourFollowUp": "Thank you for your patience.",
    "finalReaction": "Conversation concludes positively",
}

# Whole strategies synthesized to fill empty positions, one per position.
SAFE_DEFAULT_STRATEGIES = (
    StrategyResponse(
        strategyType=StrategyType.RECOMMENDED,
        replyText="I appreciate your message. Can we schedule time to discuss this?",
        predictedOutcome="Creates space for thoughtful dialogue",
        riskLevel=RiskLevel.LOW,
        riskExplanation="Non-committal response minimizes risk",
        reasoning="Non-committal response allows both parties to prepare",
        followUp="Suggest specific time to talk",
    ),
    StrategyResponse(
        strategyType=StrategyType.BOLD,
        replyText="I'd rather be direct: here's what I think we should do next.",
        predictedOutcome="Directness can move things forward or provoke a stronger reaction",
        riskLevel=RiskLevel.MEDIUM,
        riskExplanation="Being direct may escalate tension if they are not ready for it",
        reasoning="Stating intentions clearly can clear the air faster",
        followUp="Be ready to clarify or soften your stance if they push back",
    ),
    StrategyResponse(
        strategyType=StrategyType.SAFE,
        replyText="Thanks for bringing this up. Let me think it over and get back to you.",
        predictedOutcome="Buying time shows respect but may create brief uncertainty",
        riskLevel=RiskLevel.LOW,
        riskExplanation="Taking time to respond is rarely seen negatively",
        reasoning="A considered reply usually lands better than a rushed one",
        followUp="Reply within a day so it does not read as avoidance",
    ),
)

_DEFAULT_REPLY_TEXTS = frozenset(
    [s.replyText for s in SAFE_DEFAULT_STRATEGIES]
    + [STRATEGY_FIELD_FALLBACKS["replyText"]]
)

_FENCE_PATTERN = re.compile(r"```[\w+-]*\s*([\s\S]*?)```")
_INVALID_ESCAPE_PATTERN = re.compile(r'(?<!\\)\\(?!["\\/bfnrtu])')


# ── Field combinators ─────────────────────────────────────────────────────────


def _section(raw: Any, key: str) -> dict:
    value = raw.get(key) if isinstance(raw, dict) else None
    return value if isinstance(value, dict) else {}


def repair_enum(value: Any, enum_type: type, fallback: Any) -> Any:
    """Accept a case-insensitive member of ``enum_type``, else ``fallback``."""
    if isinstance(value, str):
        candidate = value.strip().lower()
        for member in enum_type:
            if member.value.lower() == candidate:
                return member
    return fallback


def repair_text(value: Any, fallback: str) -> str:
    """Accept a non-empty string after trimming, else ``fallback``."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def repair_list(
    value: Any,
    fallback: tuple[str, ...],
    limit: int = MAX_KEY_POINTS,
) -> tuple[str, ...]:
    """Keep trimmed non-empty strings, capped at ``limit``; else ``fallback``."""
    if not isinstance(value, list):
        return fallback
    items = [item.strip() for item in value if isinstance(item, str)]
    items = [item for item in items if item][:limit]
    return tuple(items) if items else fallback


# ── Section repair ────────────────────────────────────────────────────────────


def _repair_analysis(raw: Any) -> Analysis:
    section = _section(raw, "analysis")
    return Analysis(
        sentiment=repair_text(section.get("sentiment"), ANALYSIS_FALLBACKS["sentiment"]),
        dynamics=repair_text(section.get("dynamics"), ANALYSIS_FALLBACKS["dynamics"]),
        urgency=repair_enum(section.get("urgency"), Urgency, ANALYSIS_FALLBACKS["urgency"]),
        urgencyReasoning=repair_text(
            section.get("urgencyReasoning"), ANALYSIS_FALLBACKS["urgencyReasoning"]
        ),
        keyPoints=repair_list(section.get("keyPoints"), FALLBACK_KEY_POINTS),
    )


def _repair_strategy(entry: dict, index: int) -> StrategyResponse:
    fallbacks = STRATEGY_FIELD_FALLBACKS
    return StrategyResponse(
        strategyType=repair_enum(
            entry.get("strategyType"),
            StrategyType,
            STRATEGY_ROTATION[index % len(STRATEGY_ROTATION)],
        ),
        replyText=repair_text(entry.get("replyText"), fallbacks["replyText"]),
        predictedOutcome=repair_text(
            entry.get("predictedOutcome"), fallbacks["predictedOutcome"]
        ),
        riskLevel=repair_enum(entry.get("riskLevel"), RiskLevel, fallbacks["riskLevel"]),
        riskExplanation=repair_text(
            entry.get("riskExplanation"), fallbacks["riskExplanation"]
        ),
        reasoning=repair_text(entry.get("reasoning"), fallbacks["reasoning"]),
        followUp=repair_text(entry.get("followUp"), fallbacks["followUp"]),
    )


def _repair_strategies(raw: Any) -> tuple[StrategyResponse, ...]:
    entries = raw.get("responses") if isinstance(raw, dict) else None
    if not isinstance(entries, list):
        entries = []

    repaired = [
        _repair_strategy(entry, index)
        for index, entry in enumerate(entries[:STRATEGY_COUNT])
        if isinstance(entry, dict)
    ]
    # Fill gaps with defaults of the types still missing, recommended first.
    present = {strategy.strategyType for strategy in repaired}
    for default in SAFE_DEFAULT_STRATEGIES:
        if len(repaired) >= STRATEGY_COUNT:
            break
        if default.strategyType not in present:
            repaired.append(default)
            present.add(default.strategyType)
    return tuple(repaired)


def _repair_simulator(raw: Any) -> Simulator:
    section = _section(raw, "simulator")
    return Simulator(
        **{
            name: repair_text(section.get(name), fallback)
            for name, fallback in SIMULATOR_FALLBACKS.items()
        }
    )


# ── Public API ────────────────────────────────────────────────────────────────


def strip_fences(text: str) -> str:
    """Extract the JSON candidate from a reply, handling fences and extra prose."""
    if not isinstance(text, str):
        return ""

    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()

    return _brace_slice(text) or text.strip()


def fix_escape_sequences(text: str) -> str:
    """Double lone backslashes that do not form a valid JSON escape."""
    return _INVALID_ESCAPE_PATTERN.sub(r"\\\\", text)


def _brace_slice(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return None


def json_candidates(text: str) -> list[str]:
    """
    Candidate JSON strings to try, most specific first.

    The fence interior comes first, then the brace span of that interior,
    then the brace span of the whole reply.
    """
    if not isinstance(text, str):
        return []

    candidates = [strip_fences(text)]
    for source in (candidates[0], text):
        sliced = _brace_slice(source)
        if sliced:
            candidates.append(sliced)
    return list(dict.fromkeys(c for c in candidates if c))


def parse_response_text(text: str) -> Any | None:
    """Parse the cleaned reply as JSON; None when it cannot be parsed."""
    for cleaned in json_candidates(text):
        for candidate in (cleaned, fix_escape_sequences(cleaned)):
            try:
                return json.loads(candidate)
            except (json.JSONDecodeError, RecursionError):
                continue
    return None


def validate_response_structure(raw: Any) -> str | None:
    """
    Describe the first structural problem of a parsed reply, for logging.

    Returns:
        A human-readable diagnostic, or None if the top-level shape is sound
    """
    if not isinstance(raw, dict):
        return "Response is not an object"
    if not isinstance(raw.get("analysis"), dict):
        return "Missing analysis section"
    responses = raw.get("responses")
    if not isinstance(responses, list) or not responses:
        return "Missing or empty responses array"
    if len(responses) != STRATEGY_COUNT:
        return f"Expected {STRATEGY_COUNT} responses, got {len(responses)}"
    if not isinstance(raw.get("simulator"), dict):
        return "Missing simulator section"
    return None


def normalize_response(raw: Any) -> ThreadlyResponse:
    """
    Repair any parsed value into a valid ThreadlyResponse.

    Accepts anything (dict, list, None, scalars); fields that fail their
    rule are replaced by the fallbacks defined above.
    """
    return ThreadlyResponse(
        analysis=_repair_analysis(raw),
        responses=_repair_strategies(raw),
        simulator=_repair_simulator(raw),
    )


def normalize_text(text: str, provider: str | None = None) -> ThreadlyResponse:
    """Strip, parse, diagnose and repair a raw adapter reply. Never raises."""
    log = logger.bind(component="llm", subcomponent="normalizer", provider=provider)

    raw = parse_response_text(text)
    if raw is None:
        log.warning(
            "response_parse_failed",
            preview=(text or "")[:200] if isinstance(text, str) else None,
        )
        return normalize_response(None)

    problem = validate_response_structure(raw)
    if problem:
        log.warning("response_structure_warning", problem=problem)

    return normalize_response(raw)


def is_degraded(result: ThreadlyResponse) -> bool:
    """True when the result is made of fallbacks rather than model output."""
    if all(strategy.replyText in _DEFAULT_REPLY_TEXTS for strategy in result.responses):
        return True
    return tuple(result.analysis.keyPoints) == FALLBACK_KEY_POINTS


def create_degraded_response(
    scenario: Scenario | str,
    context: str = "",
) -> ThreadlyResponse:
    """Minimal response for when no provider output is available at all."""
    scenario = getattr(scenario, "value", scenario)
    snippet = (context or "").strip()[:50]
    dynamics = f"{scenario} conversation; context too limited for full analysis"
    if snippet:
        dynamics = f'{dynamics}: "{snippet}..."'

    return ThreadlyResponse(
        analysis=Analysis(
            sentiment="unclear",
            dynamics=dynamics,
            urgency=Urgency.MEDIUM,
            urgencyReasoning="Limited context available",
            keyPoints=FALLBACK_KEY_POINTS,
        ),
        responses=SAFE_DEFAULT_STRATEGIES,
        simulator=Simulator(
            theirResponse="Of course, no rush.",
            yourFollowUp="Thanks for understanding.",
            finalReaction="Positive acknowledgment",
        ),
    )
