from fastapi import APIRouter, Depends, status

from mockinterview.core.context import AppContext, get_context
from mockinterview.core.exceptions import NotFoundError
from mockinterview.schemas.config import AppConfig

router = APIRouter(tags=["Config"], prefix="/api/config")


@router.get("", status_code=status.HTTP_200_OK)
async def get_config(context: AppContext = Depends(get_context)):
    config = context.saved_config()
    if config is None:
        raise NotFoundError("Configuration not found")
    return config.model_dump(by_alias=True)


@router.post("", status_code=status.HTTP_200_OK)
async def save_config(config: AppConfig, context: AppContext = Depends(get_context)):
    return context.save_config(config).model_dump(by_alias=True)
