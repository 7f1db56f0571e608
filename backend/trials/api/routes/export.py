# backend/trials/api/routes/export.py

from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...db import get_db
from ...services.export import standings_csv

router = APIRouter(prefix="/api/export", tags=["export"])


@router.get("/csv", response_class=StreamingResponse)
def export_standings_csv(db: Session = Depends(get_db)):
    content = standings_csv(db)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="trial-standings-{stamp}.csv"'},
    )
