"""
API layer for OralExam Sim

Contains FastAPI routers for:
- Exam session control
- Reports
- Section metadata
- WebSocket real-time communication
"""

from oralexam.api.router import api_router

__all__ = ["api_router"]
