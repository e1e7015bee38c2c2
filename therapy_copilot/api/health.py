from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime

from therapy_copilot.database import get_db
from therapy_copilot.api.deps import get_llm_client

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """Health check with database connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_status = f"error: {str(e)}"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "database": db_status,
    }


@router.get("/health/llm")
async def health_check_llm(llm=Depends(get_llm_client)):
    """Health check with OpenRouter reachability."""
    reachable = await llm.health_check()
    return {
        "status": "healthy" if reachable else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "llm": "reachable" if reachable else "unreachable",
    }
