from fastapi import APIRouter, Depends

from mockinterview.core.context import AppContext, get_context

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(context: AppContext = Depends(get_context)):
    db_ok, db_message = context.check_database()
    return {
        "status": "ok",
        "database": db_message,
        "databaseConnected": db_ok,
        "configured": context.is_config_ready(),
    }
