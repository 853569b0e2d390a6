"""
Core business logic modules for OralExam Sim

Contains:
- Exam Orchestrator: Session lifecycle and run control
- Section Runner / Phase Sequencer: The timed run
- Response Collector: Attribution of recordings
- Scoring Coordinator: Scoring of the response log
- Gemini Client / Content Service: Exam generation and scoring calls
- Audio Processing: TTS playback and streaming capture
- Report Generator: Review report compilation
"""

from oralexam.core.exam_orchestrator import ExamOrchestrator
from oralexam.core.section_runner import SectionRunner
from oralexam.core.phase_sequencer import PhaseSequencer
from oralexam.core.response_collector import ResponseCollector
from oralexam.core.scoring_coordinator import ScoringCoordinator
from oralexam.core.gemini_client import GeminiClient
from oralexam.core.content_service import ContentService
from oralexam.core.audio_processor import AudioProcessor, StreamingCaptureDevice
from oralexam.core.report_generator import ReportGenerator

__all__ = [
    "ExamOrchestrator",
    "SectionRunner",
    "PhaseSequencer",
    "ResponseCollector",
    "ScoringCoordinator",
    "GeminiClient",
    "ContentService",
    "AudioProcessor",
    "StreamingCaptureDevice",
    "ReportGenerator",
]
