"""
Fill Decision Engine - routes analyzed input into new or existing blocks.

Flow:
1. Analyze input (ContentAnalyzer)
2. Retrieve similar blocks (RetrievalEngine)
3. Decide create / update / append (LLM classifier with fallback)
4. Execute, falling back to create when the target is gone or cannot merge
"""

from datetime import datetime
from typing import Any

from lifeagent.config import FillConfig
from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.core.llm.base import LLMProvider
from lifeagent.models.analysis import (
    ContentAnalysis,
    FillAction,
    FillCandidate,
    FillDecision,
    FillResult,
    FillSuggestion,
)
from lifeagent.models.block import Block, BlockType, BlockUpdate, Priority, extract_text
from lifeagent.models.vector import ScoredBlock
from lifeagent.services.content_analyzer import ContentAnalyzer
from lifeagent.services.retrieval_engine import RetrievalEngine
from lifeagent.utils.exceptions import (
    ExternalServiceError,
    MergeConflictError,
    NotFoundError,
    ValidationError,
)
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

CREATE_CONFIDENCE = 0.85
UPDATE_CONFIDENCE = 0.8
APPEND_CONFIDENCE = 0.75

_INTENT_BLOCK_TYPES: list[tuple[tuple[str, ...], BlockType]] = [
    (("task", "todo", "reminder"), BlockType.TODO),
    (("heading", "title", "section"), BlockType.HEADING),
    (("table", "data", "comparison"), BlockType.TABLE),
    (("warning", "alert", "important"), BlockType.CALLOUT),
]


def determine_block_type(analysis: ContentAnalysis) -> BlockType:
    """Map an analysis intent to the block type a new block should have."""
    intent = analysis.intent.lower()
    for cues, block_type in _INTENT_BLOCK_TYPES:
        if any(cue in intent for cue in cues):
            return block_type
    return BlockType.TEXT


def generate_block_content(analysis: ContentAnalysis, block_type: BlockType) -> dict[str, Any]:
    """Content for a new block of the given type."""
    text = analysis.extracted_content

    if block_type == BlockType.TODO:
        priority = analysis.priority or Priority.MEDIUM
        return {"text": text, "checked": False, "priority": priority.value}
    if block_type == BlockType.HEADING:
        return {"level": 2, "text": text}
    if block_type == BlockType.TABLE:
        return {"headers": ["Item", "Details"], "rows": [[text, ""]]}
    if block_type == BlockType.CALLOUT:
        style = "warning" if analysis.priority == Priority.HIGH else "info"
        return {"type": style, "text": text}
    return {"text": text}


def summarize_block(block: Block, max_chars: int = 100) -> str:
    """Short text view of a block for prompts and suggestions."""
    if block.type == BlockType.TABLE:
        content = block.content
        return f"Table with {len(content.headers)} columns and {len(content.rows)} rows"
    text = extract_text(block.type, block.content)
    if len(text) > max_chars:
        return text[:max_chars] + "..."
    return text


class FillDecisionEngine:
    """
    Chooses and executes create / update / append for new content.

    Features:
    - LLM classifier over retrieved candidates
    - Deterministic fallback when the classifier fails or misbehaves
    - Type-aware content merging
    """

    def __init__(
        self,
        retrieval: RetrievalEngine,
        block_store: BlockStore,
        analyzer: ContentAnalyzer,
        llm: LLMProvider | None = None,
        config: FillConfig | None = None,
        now_fn=None,
    ):
        """
        Initialize fill engine.

        Args:
            retrieval: Engine used to find candidate blocks
            block_store: Store used for all writes
            analyzer: Content analyzer
            llm: Optional classifier model
            config: Candidate limit and fallback confidences
            now_fn: Clock used for dated table rows (default: datetime.now)
        """
        self.retrieval = retrieval
        self.block_store = block_store
        self.analyzer = analyzer
        self.llm = llm
        self.config = config or FillConfig()
        self.now_fn = now_fn or datetime.now

    # ═══════════════════════════════════════════════════════════
    # DECISION
    # ═══════════════════════════════════════════════════════════

    async def decide(
        self,
        user_input: str,
        analysis: ContentAnalysis,
        candidates: list[ScoredBlock],
    ) -> FillDecision:
        """
        Decide where new content goes.

        Args:
            user_input: Original user text
            analysis: Analysis of the input
            candidates: Retrieved blocks, best first

        Returns:
            A decision whose update/append target is always one of the candidates
        """
        if not candidates:
            return FillDecision(
                action=FillAction.CREATE,
                confidence=self.config.empty_candidates_confidence,
                reasoning="No relevant blocks found, creating new block",
            )

        decision = None
        if self.llm is not None:
            try:
                decision = await self.llm.complete(
                    self._build_decision_prompt(user_input, analysis, candidates),
                    response_format=FillDecision,
                    max_tokens=500,
                    temperature=0.0,
                )
            except ExternalServiceError as e:
                logger.warning(
                    f"Fill classifier failed: {e}",
                    extra={"candidates": len(candidates), "error": str(e)},
                )

        if decision is not None and self._is_well_formed(decision, candidates):
            return decision

        if decision is not None:
            logger.warning(
                "Fill classifier returned an unusable decision",
                extra={"action": decision.action.value, "target": decision.target_block_id},
            )

        return FillDecision(
            action=FillAction.UPDATE,
            target_block_id=candidates[0].block.id,
            confidence=self.config.fallback_confidence,
            reasoning="Fallback: Selected most relevant block for update",
        )

    def _is_well_formed(self, decision: FillDecision, candidates: list[ScoredBlock]) -> bool:
        if decision.action == FillAction.CREATE:
            return True
        candidate_ids = {c.block.id for c in candidates}
        return decision.target_block_id is not None and decision.target_block_id in candidate_ids

    # ═══════════════════════════════════════════════════════════
    # EXECUTION
    # ═══════════════════════════════════════════════════════════

    async def execute(
        self, decision: FillDecision, analysis: ContentAnalysis, user_id: str
    ) -> FillResult:
        """
        Carry out a decision.

        A missing target or a merge conflict is logged and retried as create.

        Returns:
            FillResult with the created or modified block
        """
        if decision.action == FillAction.CREATE:
            return await self._create(analysis, user_id, decision.confidence)

        try:
            if not decision.target_block_id:
                raise NotFoundError(f"No target block for {decision.action.value}")
            if decision.action == FillAction.UPDATE:
                return await self._merge_into(decision.target_block_id, analysis, append=False)
            return await self._merge_into(decision.target_block_id, analysis, append=True)
        except (NotFoundError, MergeConflictError) as e:
            logger.warning(
                f"Cannot {decision.action.value} block {decision.target_block_id}, creating instead: {e}",
                extra={"target": decision.target_block_id, "error": str(e)},
            )
            return await self._create(analysis, user_id, None)

    async def _create(
        self, analysis: ContentAnalysis, user_id: str, confidence: float | None
    ) -> FillResult:
        block_type = determine_block_type(analysis)
        content = generate_block_content(analysis, block_type)
        confidence = CREATE_CONFIDENCE if confidence is None else confidence

        time_info = analysis.time_info
        metadata: dict[str, Any] = {
            "category": analysis.category,
            "priority": analysis.priority,
            "tags": analysis.keywords,
            "ai_generated": True,
            "confidence": confidence,
        }
        if time_info is not None:
            metadata["scheduled_at"] = time_info.scheduled_at
            metadata["due_date"] = time_info.due_date
            if time_info.duration is not None:
                metadata["duration"] = time_info.duration

        block = await self.block_store.create_block(block_type, content, user_id, metadata=metadata)

        return FillResult(
            action=FillAction.CREATE,
            block=block,
            confidence=confidence,
            reasoning=f"Created new {block_type.value} block for {analysis.intent}",
        )

    async def _merge_into(self, block_id: str, analysis: ContentAnalysis, append: bool) -> FillResult:
        existing = await self.block_store.get_block(block_id)
        content = self.merge_content(existing, analysis, append=append)

        patch: dict[str, Any] = {}
        if analysis.time_info is not None:
            if analysis.time_info.scheduled_at is not None:
                patch["scheduled_at"] = analysis.time_info.scheduled_at
            if analysis.time_info.due_date is not None:
                patch["due_date"] = analysis.time_info.due_date
        if analysis.priority is not None:
            patch["priority"] = analysis.priority

        block = await self.block_store.update_block(
            block_id, BlockUpdate(content=content, metadata=patch or None)
        )

        action = FillAction.APPEND if append else FillAction.UPDATE
        verb = "Appended new information to" if append else "Updated"
        return FillResult(
            action=action,
            block=block,
            confidence=APPEND_CONFIDENCE if append else UPDATE_CONFIDENCE,
            reasoning=f"{verb} existing {existing.type.value} block",
        )

    def merge_content(self, block: Block, analysis: ContentAnalysis, append: bool = False) -> dict[str, Any]:
        """
        New content for an existing block.

        Raises:
            MergeConflictError: If the block's type cannot absorb text (pages)
        """
        current = block.content.model_dump(mode="json")
        extracted = analysis.extracted_content

        if block.type == BlockType.TEXT:
            separator = "\n\n• " if append else "\n\n"
            return {**current, "text": f"{current['text']}{separator}{extracted}"}

        if block.type == BlockType.TODO:
            merged = {**current, "text": extracted}
            if analysis.priority is not None:
                merged["priority"] = analysis.priority.value
            return merged

        if block.type == BlockType.TABLE:
            detail = self.now_fn().date().isoformat() if append else ""
            return {**current, "rows": [*current["rows"], [extracted, detail]]}

        if block.type in (BlockType.HEADING, BlockType.CALLOUT):
            return generate_block_content(analysis, block.type)

        raise MergeConflictError(
            f"Cannot merge text into a {block.type.value} block",
            context={"block_id": block.id, "block_type": block.type.value},
        )

    # ═══════════════════════════════════════════════════════════
    # ENTRY POINTS
    # ═══════════════════════════════════════════════════════════

    async def _candidates(
        self, user_input: str, analysis: ContentAnalysis, user_id: str
    ) -> list[ScoredBlock]:
        query = analysis.extracted_content or user_input
        return await self.retrieval.search_scored(
            query,
            user_id,
            limit=self.config.candidate_limit,
            min_vector_score=self.retrieval.config.query_min_score,
        )

    async def analyze_and_fill(self, user_input: str, user_id: str) -> FillResult:
        """
        Analyze input and file it into the right block.

        Raises:
            ValidationError: If input is empty
        """
        if not user_input or not user_input.strip():
            raise ValidationError("Input cannot be empty")

        analysis = await self.analyzer.analyze(user_input)
        candidates = await self._candidates(user_input, analysis, user_id)
        decision = await self.decide(user_input, analysis, candidates)
        result = await self.execute(decision, analysis, user_id)

        logger.info(
            f"Fill {result.action.value} -> {result.block.id}",
            extra={
                "user_id": user_id,
                "action": result.action.value,
                "block_id": result.block.id,
                "confidence": result.confidence,
            },
        )
        return result

    async def get_fill_suggestions(self, user_input: str, user_id: str) -> FillSuggestion:
        """Dry run of analyze_and_fill: analysis, decision and candidates, no writes."""
        if not user_input or not user_input.strip():
            raise ValidationError("Input cannot be empty")

        analysis = await self.analyzer.analyze(user_input)
        candidates = await self._candidates(user_input, analysis, user_id)
        decision = await self.decide(user_input, analysis, candidates)

        return FillSuggestion(
            analysis=analysis,
            decision=decision,
            candidates=[
                FillCandidate(
                    block_id=c.block.id,
                    type=c.block.type.value,
                    text=summarize_block(c.block),
                    score=c.score,
                )
                for c in candidates
            ],
        )

    def _build_decision_prompt(
        self, user_input: str, analysis: ContentAnalysis, candidates: list[ScoredBlock]
    ) -> str:
        blocks = "\n".join(
            f"- id={c.block.id} type={c.block.type.value} "
            f"category={c.block.metadata.category} score={c.score:.2f} "
            f"updated={c.block.updated_at.isoformat()}: {summarize_block(c.block)}"
            for c in candidates
        )
        return f"""
You are a content organization assistant. Decide where the user's new content belongs.

## User Input
{user_input}

## Analysis
Intent: {analysis.intent}
Category: {analysis.category}
Core content: {analysis.extracted_content}

## Existing Blocks (most relevant first)
{blocks}

## Task
Return:
- action: "create", "update", or "append"
- target_block_id: the id of the block to update or append to (must be one of the ids above; omit for create)
- confidence: 0-1
- reasoning: one sentence

Consider content relevance, block type compatibility, recency and user intent.
"""
