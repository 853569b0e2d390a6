"""
API endpoint modules for OralExam Sim
"""

from oralexam.api.endpoints import exam, report, metadata

__all__ = ["exam", "report", "metadata"]
