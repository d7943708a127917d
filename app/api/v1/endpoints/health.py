# app/api/v1/endpoints/health.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_services
from app.db.deps import get_db
from app.services.container import Services

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
def liveness():
    return {"status": "ok"}


@router.get("/db")
def db_health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return JSONResponse(status_code=503, content={"status": "unhealthy", "message": str(e)})
    return {"status": "ok"}


@router.get("/cache")
async def cache_health(services: Services = Depends(get_services)):
    result = await services.cache.health_check()
    if result["status"] != "healthy":
        return JSONResponse(status_code=503, content=result)
    return result
