"""
Services for LifeAgent.

High-level business logic services:
- RetrievalEngine: Hybrid vector + keyword search
- ContentAnalyzer: Intent, category and time extraction
- FillDecisionEngine: Create / update / append routing
- TimeParser, TimeService: Natural-language times and scheduling
- TemplateService: Reusable block layouts
- IndexReconciler: Vector index repair

LifeAgent (lifeagent.services.life_agent) wires these together with the
tool registry and agent loops; it is imported from its module directly.
"""

from lifeagent.services.content_analyzer import ContentAnalyzer
from lifeagent.services.fill_engine import FillDecisionEngine
from lifeagent.services.reconciliation import IndexReconciler, ReconcileReport
from lifeagent.services.retrieval_engine import RetrievalEngine
from lifeagent.services.template_service import TemplateService
from lifeagent.services.time_service import ParsedTime, TimeParser, TimeService

__all__ = [
    "RetrievalEngine",
    "ContentAnalyzer",
    "FillDecisionEngine",
    "TimeParser",
    "TimeService",
    "ParsedTime",
    "TemplateService",
    "IndexReconciler",
    "ReconcileReport",
]
