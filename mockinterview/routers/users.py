from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from mockinterview.core.context import get_db
from mockinterview.core.exceptions import AppError, NotFoundError
from mockinterview.schemas.session import SuccessResponse
from mockinterview.schemas.user import (
    SECTIONS,
    ResumeRequest,
    SkillRequest,
    UserProfileCreate,
    UserProfileOut,
    UserProfileUpdate,
)
from mockinterview.services.users import UserService

router = APIRouter(tags=["Users"], prefix="/api/users")


def _require_id(user_id: Optional[str]) -> str:
    if not user_id:
        raise AppError("User ID is required", status_code=400)
    return user_id


def _section_schema(section: str):
    schema = SECTIONS.get(section)
    if schema is None:
        raise NotFoundError(f"Unknown profile section: {section}")
    return schema


def _error_list(error: ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()]


def _validate_entry(section: str, payload: dict[str, Any]) -> dict:
    try:
        entry = _section_schema(section).model_validate(payload)
    except ValidationError as e:
        raise AppError(f"Invalid {section} entry", status_code=400, detail=_error_list(e)) from e
    return entry.model_dump(exclude={"id"})


@router.get("", status_code=status.HTTP_200_OK, response_model=UserProfileOut)
async def get_user(id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return UserService.get_user(db, _require_id(id))


@router.post("", status_code=status.HTTP_200_OK, response_model=UserProfileOut)
async def create_user(profile: UserProfileCreate, db: Session = Depends(get_db)):
    return UserService.create_user(db, profile)


@router.put("", status_code=status.HTTP_200_OK, response_model=UserProfileOut)
async def update_user(update: UserProfileUpdate, db: Session = Depends(get_db)):
    return UserService.update_user(db, update)


@router.delete("", status_code=status.HTTP_200_OK, response_model=SuccessResponse)
async def delete_user(id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    UserService.delete_user(db, _require_id(id))
    return SuccessResponse()


# ============================================
# Skills and resume
# ============================================

@router.post("/{user_id}/skills", status_code=status.HTTP_200_OK, response_model=UserProfileOut)
async def add_skill(user_id: str, request: SkillRequest, db: Session = Depends(get_db)):
    return UserService.add_skill(db, user_id, request.skill)


@router.delete("/{user_id}/skills", status_code=status.HTTP_200_OK, response_model=UserProfileOut)
async def remove_skill(user_id: str, skill: str = Query(...), db: Session = Depends(get_db)):
    return UserService.remove_skill(db, user_id, skill)


@router.put("/{user_id}/resume", status_code=status.HTTP_200_OK, response_model=UserProfileOut)
async def set_resume(user_id: str, request: ResumeRequest, db: Session = Depends(get_db)):
    return UserService.set_resume_url(db, user_id, request.url)


# ============================================
# Experience / education / projects / certifications
# ============================================

@router.post("/{user_id}/{section}", status_code=status.HTTP_200_OK)
async def add_entry(user_id: str, section: str, payload: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    entry = _validate_entry(section, payload)
    item = UserService.add_entry(db, user_id, section, entry)
    return _section_schema(section).model_validate(item).model_dump(by_alias=True)


@router.put("/{user_id}/{section}/{item_id}", status_code=status.HTTP_200_OK)
async def update_entry(
    user_id: str,
    section: str,
    item_id: str,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    entry = _validate_entry(section, payload)
    item = UserService.update_entry(db, user_id, section, item_id, entry)
    return _section_schema(section).model_validate(item).model_dump(by_alias=True)


@router.delete("/{user_id}/{section}/{item_id}", status_code=status.HTTP_200_OK, response_model=SuccessResponse)
async def remove_entry(user_id: str, section: str, item_id: str, db: Session = Depends(get_db)):
    _section_schema(section)
    UserService.remove_entry(db, user_id, section, item_id)
    return SuccessResponse()
