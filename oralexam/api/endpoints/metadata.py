"""
Metadata API endpoints

Provides reference data for:
- Section kinds (titles, instructions, timing, scores)
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from oralexam.core.section_kinds import get_handler
from oralexam.models.plan import SectionKind

router = APIRouter()


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class SectionInfo(BaseModel):
    """Information about a section kind."""
    kind: SectionKind
    title: str
    instruction: str
    prep_seconds: int
    record_seconds: int
    item_max_score: float


def _section_info(kind: SectionKind) -> SectionInfo:
    handler = get_handler(kind)
    return SectionInfo(
        kind=kind,
        title=handler.title,
        instruction=handler.instruction,
        prep_seconds=handler.default_prep_seconds,
        record_seconds=handler.default_record_seconds,
        item_max_score=handler.item_max_score,
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get("/sections")
async def get_sections() -> list[SectionInfo]:
    """Get every section kind in exam order."""
    return [_section_info(kind) for kind in SectionKind]


@router.get("/sections/{kind}")
async def get_section(kind: str) -> SectionInfo:
    """Get details for one section kind."""
    try:
        section_kind = SectionKind(kind)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown section: {kind}")
    return _section_info(section_kind)
