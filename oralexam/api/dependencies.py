"""
API Dependencies

Provides dependency injection for API endpoints.
Manages singleton instances of core components.
"""

from oralexam.core.audio_processor import AudioProcessor
from oralexam.core.content_service import ContentService
from oralexam.core.exam_orchestrator import ExamOrchestrator
from oralexam.core.gemini_client import GeminiClient
from oralexam.core.report_generator import ReportGenerator


# ============================================================================
# SINGLETON INSTANCES
# ============================================================================

_gemini: GeminiClient | None = None
_orchestrator: ExamOrchestrator | None = None
_report_generator: ReportGenerator | None = None


def get_gemini() -> GeminiClient:
    """Get the Gemini client singleton."""
    global _gemini

    if _gemini is None:
        _gemini = GeminiClient()

    return _gemini


def get_orchestrator() -> ExamOrchestrator:
    """
    Get the exam orchestrator singleton.

    Lazily initializes all required components. Every session gets its
    own speech player so synthesized audio reaches only its client.
    """
    global _orchestrator

    if _orchestrator is None:
        gemini = get_gemini()
        _orchestrator = ExamOrchestrator(
            content_service=ContentService(gemini),
            scorer=gemini,
            player_factory=lambda: AudioProcessor(gemini),
        )

    return _orchestrator


def get_report_generator() -> ReportGenerator:
    """Get the report generator singleton."""
    global _report_generator

    if _report_generator is None:
        _report_generator = ReportGenerator()

    return _report_generator


async def cleanup():
    """Cleanup resources on shutdown."""
    global _gemini, _orchestrator, _report_generator

    if _orchestrator:
        await _orchestrator.shutdown()
        _orchestrator = None

    if _gemini:
        await _gemini.close()
        _gemini = None

    _report_generator = None
