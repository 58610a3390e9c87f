from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from bizledger.core.database import get_db, run_read


router = APIRouter()


@router.get("/health")
def health(db: Session = Depends(get_db)):
    run_read(db, lambda s: s.execute(text("SELECT 1")), label="health check")
    return {"status": "ok"}
