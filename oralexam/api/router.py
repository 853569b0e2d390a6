"""
Main API router for OralExam Sim

Aggregates all API routes and provides the main application router.
"""

from fastapi import APIRouter

from oralexam.api.endpoints import exam, metadata, report

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    exam.router,
    prefix="/exam",
    tags=["Exam"]
)

api_router.include_router(
    report.router,
    prefix="/exam",
    tags=["Report"]
)

api_router.include_router(
    metadata.router,
    prefix="/metadata",
    tags=["Metadata"]
)
