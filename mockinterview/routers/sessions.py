from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mockinterview.core.context import AppContext, get_context, get_db
from mockinterview.core.exceptions import AppError
from mockinterview.schemas.session import (
    SessionCreate,
    SessionOut,
    SessionUpdate,
    SessionUpdateRequest,
    SuccessResponse,
)
from mockinterview.services.sessions import SessionService

router = APIRouter(tags=["Sessions"], prefix="/api/sessions")


@router.get("", status_code=status.HTTP_200_OK, response_model=list[SessionOut])
async def list_sessions(userId: Optional[str] = Query(None), db: Session = Depends(get_db)):
    if not userId:
        raise AppError("User ID is required", status_code=400)
    return SessionService.get_all_sessions(db, userId)


@router.post("", status_code=status.HTTP_200_OK, response_model=SessionOut)
async def create_session(request: SessionCreate, context: AppContext = Depends(get_context)):
    # the store checks credentials before anything is written
    return context.store(request.user_id).create_session(request)


@router.put("", status_code=status.HTTP_200_OK, response_model=SessionOut)
async def update_session(request: SessionUpdateRequest, db: Session = Depends(get_db)):
    update = SessionUpdate.model_validate(request.model_dump(exclude={"id"}, exclude_unset=True))
    return SessionService.update_session(db, request.id, update)


@router.delete("", status_code=status.HTTP_200_OK, response_model=SuccessResponse)
async def delete_session(
    id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    if not id:
        raise AppError("Session ID is required", status_code=400)
    return _delete(db, context, id)


# ============================================
# Single session by path
# ============================================

@router.get("/{session_id}", status_code=status.HTTP_200_OK, response_model=SessionOut)
async def get_session(session_id: str, db: Session = Depends(get_db)):
    return SessionService.get_session(db, session_id)


@router.put("/{session_id}", status_code=status.HTTP_200_OK, response_model=SessionOut)
async def replace_session_fields(session_id: str, update: SessionUpdate, db: Session = Depends(get_db)):
    return SessionService.update_session(db, session_id, update)


@router.delete("/{session_id}", status_code=status.HTTP_200_OK, response_model=SuccessResponse)
async def delete_session_by_path(
    session_id: str,
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    return _delete(db, context, session_id)


def _delete(db: Session, context: AppContext, session_id: str) -> SuccessResponse:
    SessionService.delete_session(db, session_id)
    context.flows.discard(session_id)
    return SuccessResponse()
