# oracyn/api/stats.py
"""Usage statistics for the authenticated user."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from oracyn.api.deps import get_current_user, get_db
from oracyn.db.models import User
from oracyn.repositories.stats_repository import StatsRepository
from oracyn.schemas.pydantic_schemas import StatsResponse

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
def get_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return StatsResponse(**StatsRepository(db).for_user(current_user.id))
