"""
Content Analyzer - turns free text into a structured ContentAnalysis.

Uses LLM structured output when a model is configured and falls back to
cue-word heuristics otherwise. Time information always comes from
TimeParser so dates are anchored to the injected clock.
"""

import re

from lifeagent.core.llm.base import LLMProvider
from lifeagent.models.analysis import ContentAnalysis
from lifeagent.models.block import Priority
from lifeagent.services.time_service import ParsedTime, TimeParser
from lifeagent.utils.exceptions import ExternalServiceError, ValidationError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

_LEAD_IN = re.compile(
    r"^\s*(?:please\s+)?(?:"
    r"remind\s+me\s+to|remember\s+to|don'?t\s+forget\s+to|"
    r"i\s+need\s+to|i\s+have\s+to|i\s+must|i\s+should|i\s+want\s+to|"
    r"add\s+(?:a\s+)?(?:task|todo|note)\s+to|"
    r"(?:todo|to-do|task|note|reminder)\s*:|note\s+that"
    r")\s+",
    re.IGNORECASE,
)
_TRAILING_PREPOSITION = re.compile(r"\s+\b(?:at|on|by|before|until|for)\s*$", re.IGNORECASE)

_INTENT_CUES: list[tuple[str, tuple[str, ...]]] = [
    ("reminder", ("remind me", "reminder", "don't forget", "dont forget", "remember to")),
    ("todo", ("todo", "to-do", "task", "need to", "have to", "must ", "should ")),
    ("heading", ("heading", "title", "section")),
    ("table", ("table", "compare", "comparison", " vs ", "versus")),
    ("warning", ("warning", "alert", "careful", "caution")),
    ("important_note", ("important", "critical", "note that")),
]

_CATEGORY_CUES: list[tuple[str, tuple[str, ...]]] = [
    ("work", ("meeting", "project", "client", "report", "deadline", "email", "office", "boss")),
    ("health", ("doctor", "dentist", "gym", "workout", "run ", "medicine", "exercise", "yoga")),
    ("finance", ("pay ", "bill", "budget", "invoice", "bank", "rent", "tax")),
    ("shopping", ("buy", "groceries", "grocery", "shop", "order ")),
    ("personal", ("mom", "dad", "family", "friend", "birthday", "wife", "husband", "kids")),
]

_HIGH_PRIORITY = ("urgent", "asap", "critical", "immediately", "high priority", "important")
_LOW_PRIORITY = ("someday", "eventually", "low priority", "whenever", "no rush")


class ContentAnalyzer:
    """
    Structured reading of user input.

    Features:
    - LLM structured output (ContentAnalysis)
    - Deterministic heuristic fallback on model failure
    - Clock-anchored time extraction
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        time_parser: TimeParser | None = None,
        max_tokens: int = 1000,
    ):
        """
        Initialize analyzer.

        Args:
            llm: Optional LLM for structured analysis
            time_parser: Parser used for time extraction
            max_tokens: Token budget for the analysis call
        """
        self.llm = llm
        self.time_parser = time_parser or TimeParser()
        self.max_tokens = max_tokens

    async def analyze(self, text: str) -> ContentAnalysis:
        """
        Analyze user input.

        Args:
            text: Free text from the user

        Returns:
            ContentAnalysis with time info from TimeParser

        Raises:
            ValidationError: If text is empty
        """
        if not text or not text.strip():
            raise ValidationError("Cannot analyze empty input")

        time_info, parsed = self.time_parser.extract(text)

        analysis = None
        if self.llm is not None:
            try:
                analysis = await self.llm.complete(
                    self._build_prompt(text),
                    response_format=ContentAnalysis,
                    max_tokens=self.max_tokens,
                    temperature=0.0,
                )
            except ExternalServiceError as e:
                logger.warning(
                    f"LLM analysis failed, using heuristics: {e}",
                    extra={"error": str(e)},
                )

        if analysis is None:
            analysis = self.heuristic_analysis(text, parsed)
        elif not analysis.extracted_content.strip():
            analysis = analysis.model_copy(
                update={"extracted_content": self.extract_core_content(text, parsed)}
            )

        return analysis.model_copy(update={"time_info": time_info})

    def heuristic_analysis(self, text: str, parsed: ParsedTime | None = None) -> ContentAnalysis:
        """Rule-based analysis used when no model is available."""
        lowered = f" {text.lower()} "
        extracted = self.extract_core_content(text, parsed)

        return ContentAnalysis(
            intent=self.detect_intent(lowered, has_time=parsed is not None),
            category=self.detect_category(lowered),
            priority=self.detect_priority(lowered),
            extracted_content=extracted,
            keywords=self.extract_keywords(extracted),
            entities=self.extract_entities(extracted),
        )

    def detect_intent(self, lowered: str, has_time: bool = False) -> str:
        for intent, cues in _INTENT_CUES:
            if any(cue in lowered for cue in cues):
                return intent
        # A time phrase with no other cue reads as something to be reminded of
        return "reminder" if has_time else "note"

    def detect_category(self, lowered: str) -> str:
        for category, cues in _CATEGORY_CUES:
            if any(cue in lowered for cue in cues):
                return category
        return "general"

    def detect_priority(self, lowered: str) -> Priority | None:
        if any(cue in lowered for cue in _HIGH_PRIORITY):
            return Priority.HIGH
        if any(cue in lowered for cue in _LOW_PRIORITY):
            return Priority.LOW
        if "medium priority" in lowered:
            return Priority.MEDIUM
        return None

    def extract_core_content(self, text: str, parsed: ParsedTime | None = None) -> str:
        """
        Strip lead-in phrases and the matched time phrase.

        "Remind me to buy milk tomorrow at 5pm" -> "buy milk"
        """
        core = text
        if parsed is not None and parsed.end <= len(text):
            core = f"{text[: parsed.start]} {text[parsed.end :]}"

        core = _LEAD_IN.sub("", core)
        core = re.sub(r"\s+", " ", core).strip()
        core = _TRAILING_PREPOSITION.sub("", core)
        core = core.strip(" ,;:.!")

        return core or text.strip()

    def extract_keywords(self, text: str) -> list[str]:
        words = re.findall(r"\w+", text.lower())
        return list(dict.fromkeys(w for w in words if len(w) > 3))

    def extract_entities(self, text: str) -> list[str]:
        """Capitalized words that do not start the text."""
        words = re.findall(r"\b\w+\b", text)
        return list(dict.fromkeys(w for w in words[1:] if w[:1].isupper()))

    def _build_prompt(self, text: str) -> str:
        return f"""
You are a content analyzer for a personal notes and task system. Analyze the user input and extract structured information.

## Input
{text}

## Fields
- intent: what the user wants (reminder, todo, note, heading, table, warning, important_note)
- category: work, personal, health, finance, shopping, or general
- priority: high, medium or low, only if stated or clearly implied
- extracted_content: the core content without filler words or time phrases
- keywords: important keywords
- entities: named people, places and things

Leave time_info empty; dates are resolved separately.
"""
