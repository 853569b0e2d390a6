"""
Exception hierarchy for OralExam Sim.

Run-fatal:
- PlanGenerationError: the exam plan could not be produced, no run starts
- ConfigurationError: a section kind has no handler or rubric

Recovered inside a run:
- PlaybackError: playback phase completes silently
- CaptureError: an empty capture is synthesized for the item
- ScoringError: the item is left out of the results
"""


class OralExamError(Exception):
    """Base exception for all exam errors"""
    pass


class PlanGenerationError(OralExamError):
    """Raised when exam content cannot be generated or converted into a plan"""
    pass


class ConfigurationError(OralExamError):
    """Raised when section handlers or rubrics do not cover every section kind"""
    pass


class PlaybackError(OralExamError):
    """Raised when text-to-speech playback fails"""
    pass


class CaptureError(OralExamError):
    """Raised when the capture device fails to record a response"""
    pass


class ScoringError(OralExamError):
    """Raised when a response cannot be scored"""
    pass


class StateTransitionError(OralExamError):
    """Raised when an invalid state transition is attempted."""
    pass
