"""Lead classifier - Claude first, deterministic heuristic as the fallback."""

import json
import math
import re
import time
from datetime import datetime
from pathlib import Path

import anthropic
import structlog
from pydantic import BaseModel, Field

from shiftboard.api.health import CLASSIFICATIONS
from shiftboard.config import settings
from shiftboard.models.lead import LEAD_TIERS

logger = structlog.get_logger()

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

# Tier -> pipeline status. Pure lookup, never inferred.
TIER_STATUS = {
    "SOFTBALL": "qualified",
    "MEDIUM": "qualified",
    "HARD": "incoming",
    "DISQUALIFY": "disqualified",
}

ANSWER_LABELS = {
    "role": "Role",
    "company_size": "Company size",
    "industry": "Industry",
    "project_type": "What they need",
    "vision_clarity": "Vision clarity",
    "has_designs": "Designs/specs",
    "integrations": "Integrations needed",
    "timeline": "Timeline",
    "budget": "Budget",
    "decision_maker": "Decision maker",
    "current_tools": "Current tools",
    "frustration": "Biggest frustration",
    "past_experience": "Past dev experience",
    "success_criteria": "Success looks like",
    "source": "How they found us",
}

DISQUALIFY_CUES = (
    "free advice", "for free", "no budget", "unpaid", "equity only", "just curious",
    "student project", "homework", "under $1k", "under_1k", "not sure what i want",
)
ENTERPRISE_CUES = (
    "enterprise", "procurement", "rfp", "board approval", "committee", "stakeholders",
    "compliance", "soc 2", "soc2", "hipaa", "500+", "1000+", "legal review",
)
SOFTBALL_CUES = (
    "asap", "urgent", "this week", "this month", "spreadsheet", "shopify",
    "ready to start", "budget approved", "decision maker", "i decide", "clear vision",
    "crystal_clear", "1_2_weeks", "immediately",
)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def load_prompt_template(template_id: str) -> str:
    """Load a prompt template by ID (filename without extension)."""
    path = PROMPTS_DIR / f"{template_id}.txt"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {template_id} (searched {PROMPTS_DIR})")
    return path.read_text(encoding="utf-8")


class ClassificationResult(BaseModel):
    tier: str
    confidence: int = Field(default=50, ge=0, le=100)
    rationale: str = "No rationale provided"
    red_flags: list[str] = []
    green_flags: list[str] = []
    recommended_action: str = "Review manually"
    estimated_deal_size: str = "unclear"
    urgency_score: int = Field(default=5, ge=1, le=10)
    fit_score: int = Field(default=5, ge=1, le=10)
    notes: str = ""
    source: str = "ai"  # ai, heuristic

    @property
    def used_fallback(self) -> bool:
        return self.source == "heuristic"

    def to_assessment(self) -> dict:
        """Shape persisted in leads.ai_assessment."""
        return self.model_dump()


def status_for_tier(tier: str) -> str:
    return TIER_STATUS[tier]


def _clamp(value, low: int, high: int, default: int) -> int:
    """Numeric or numeric-string score, rounded and clamped; anything else gets the default."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return max(low, min(high, int(round(number))))


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def parse_classification(content: str) -> ClassificationResult:
    """Parse a model reply into a result. Raises ValueError on anything unusable."""
    text = content or ""
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)
    obj = _OBJECT_RE.search(text)
    if obj:
        text = obj.group(0)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Classification reply is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Classification reply is not a JSON object")

    tier = data.get("tier")
    if tier not in LEAD_TIERS:
        raise ValueError(f"Invalid tier: {tier!r}")

    return ClassificationResult(
        tier=tier,
        confidence=_clamp(data.get("confidence"), 0, 100, 50),
        rationale=str(data.get("rationale") or data.get("reasoning") or "No rationale provided"),
        red_flags=_string_list(data.get("red_flags")),
        green_flags=_string_list(data.get("green_flags")),
        recommended_action=str(data.get("recommended_action") or "Review manually"),
        estimated_deal_size=str(data.get("estimated_deal_size") or "unclear"),
        urgency_score=_clamp(data.get("urgency_score"), 1, 10, 5),
        fit_score=_clamp(data.get("fit_score"), 1, 10, 5),
        notes=str(data.get("notes") or ""),
        source="ai",
    )


def _answer_text(value) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def build_user_prompt(lead) -> str:
    lines = [
        "Classify this incoming lead:",
        "",
        "## Lead",
        f"- Name: {lead.name}",
        f"- Email: {lead.email}",
        f"- Company: {getattr(lead, 'company', None) or 'Not provided'}",
    ]

    answers = getattr(lead, "answers", None)
    if isinstance(answers, dict) and answers:
        lines += ["", "## Intake answers"]
        for key, label in ANSWER_LABELS.items():
            if answers.get(key) not in (None, "", []):
                lines.append(f"- {label}: {_answer_text(answers[key])}")

    message = getattr(lead, "message", None)
    if message:
        lines += ["", "## Message", message]

    lines += [
        "",
        "## Context",
        f"- Submitted: {getattr(lead, 'created_at', None) or 'unknown'}",
        f"- Source: {getattr(lead, 'source', None) or 'website'}",
        "",
        "Analyze this lead and return your classification as JSON.",
    ]
    return "\n".join(lines)


def _haystack(lead) -> str:
    parts = [getattr(lead, "message", None) or "", getattr(lead, "company", None) or ""]
    answers = getattr(lead, "answers", None)
    if isinstance(answers, dict):
        parts += [_answer_text(v) for v in answers.values() if v is not None]
    return " ".join(parts).lower()


def heuristic_classification(lead, reason: str) -> ClassificationResult:
    """Rule-based classification used whenever the model path is unavailable.

    Keyword cues over message, company and intake answers. Disqualify cues
    win, then enterprise cues (HARD), then two or more urgency/fit cues
    (SOFTBALL). Anything else stays MEDIUM for manual review.
    """
    text = _haystack(lead)
    disqualify = [c for c in DISQUALIFY_CUES if c in text]
    enterprise = [c for c in ENTERPRISE_CUES if c in text]
    softball = [c for c in SOFTBALL_CUES if c in text]

    if disqualify:
        tier, flags_red, flags_green = "DISQUALIFY", disqualify, []
    elif enterprise:
        tier, flags_red, flags_green = "HARD", enterprise, softball
    elif len(softball) >= 2:
        tier, flags_red, flags_green = "SOFTBALL", [], softball
    else:
        tier, flags_red, flags_green = "MEDIUM", [], softball

    matched = bool(disqualify or enterprise or len(softball) >= 2)
    return ClassificationResult(
        tier=tier,
        confidence=30 if matched else 0,
        rationale=f"Automated classification unavailable ({reason}); rule-based tier assigned for manual review.",
        red_flags=["Rule-based classification - needs manual review"] + flags_red,
        green_flags=flags_green,
        recommended_action="Review this lead manually",
        estimated_deal_size="unclear",
        urgency_score=5,
        fit_score=5,
        notes=f"Fallback used at {datetime.utcnow().isoformat()}",
        source="heuristic",
    )


class LeadClassifier:
    """Classifies leads into tiers. ``classify`` never raises."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
        client=None,
    ):
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.classifier_model
        self.max_tokens = max_tokens or settings.classifier_max_tokens
        self.timeout = timeout or settings.classifier_timeout
        self._client = client
        self._system_prompt: str | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self):
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout, max_retries=1)
        return self._client

    def _get_system_prompt(self) -> str:
        if self._system_prompt is None:
            self._system_prompt = load_prompt_template("lead_classify_v1")
        return self._system_prompt

    async def _call_model(self, prompt: str) -> str:
        response = await self._get_client().messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=self._get_system_prompt(),
            messages=[{"role": "user", "content": prompt}],
        )
        for block in response.content or []:
            if getattr(block, "type", None) == "text" and getattr(block, "text", None):
                return block.text
        raise ValueError("No text content in model response")

    async def classify(self, lead) -> ClassificationResult:
        if not self.enabled:
            logger.info("classification_fallback_used", lead_id=str(getattr(lead, "id", "")), reason="no_api_key")
            return heuristic_classification(lead, "no API key configured")

        try:
            content = await self._call_model(build_user_prompt(lead))
            result = parse_classification(content)
        except Exception as e:
            logger.warning(
                "classification_fallback_used",
                lead_id=str(getattr(lead, "id", "")),
                reason=type(e).__name__,
                error=str(e),
            )
            return heuristic_classification(lead, type(e).__name__)

        logger.info(
            "lead_classified",
            lead_id=str(getattr(lead, "id", "")),
            tier=result.tier,
            confidence=result.confidence,
        )
        return result


async def classify_and_update(store, classifier: LeadClassifier, lead):
    """Classify a lead and persist tier, status and assessment in one update.

    Returns ``(lead, classification, metadata)``. Store errors propagate.
    """
    start = time.monotonic()
    classification = await classifier.classify(lead)
    duration_ms = int((time.monotonic() - start) * 1000)
    CLASSIFICATIONS.labels(source=classification.source, tier=classification.tier).inc()

    updated = await store.apply_classification(
        lead.id,
        tier=classification.tier,
        status=status_for_tier(classification.tier),
        assessment=classification.to_assessment(),
    )
    metadata = {
        "used_fallback": classification.used_fallback,
        "duration_ms": duration_ms,
        "classified_at": datetime.utcnow().isoformat(),
    }
    return updated or lead, classification, metadata


def get_classifier() -> LeadClassifier:
    """FastAPI dependency."""
    return LeadClassifier()
