from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import SiteStatsOut
from ..services.profiles import site_stats

router = APIRouter()


@router.get("", response_model=SiteStatsOut)
def stats(db: Session = Depends(get_db)):
    return site_stats(db)
