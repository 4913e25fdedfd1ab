import logging
import uuid

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from mockinterview.core.exceptions import ConflictError, NotFoundError
from mockinterview.models.models import UserProfile
from mockinterview.schemas.user import SECTIONS, UserProfileCreate, UserProfileUpdate

logger = logging.getLogger(__name__)


def _with_ids(entries: list[dict]) -> list[dict]:
    return [{**e, "id": e.get("id") or str(uuid.uuid4())} for e in entries]


class UserService:
    @staticmethod
    def get_user(db: Session, user_id: str) -> UserProfile:
        user = db.query(UserProfile).filter(UserProfile.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def find_user(db: Session, user_id: str) -> UserProfile | None:
        return db.query(UserProfile).filter(UserProfile.id == user_id).first()

    @staticmethod
    def create_user(db: Session, profile: UserProfileCreate) -> UserProfile:
        data = profile.model_dump()
        data["id"] = data.get("id") or str(uuid.uuid4())
        if UserService.find_user(db, data["id"]):
            raise ConflictError(f"User {data['id']} already exists")

        for section in SECTIONS:
            data[section] = _with_ids(data[section])

        user = UserProfile(**data)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"User profile {user.id} created")
        return user

    @staticmethod
    def update_user(db: Session, update: UserProfileUpdate) -> UserProfile:
        user = UserService.get_user(db, update.id)
        fields = update.model_dump(exclude_unset=True, exclude={"id"})
        for name, value in fields.items():
            if name in SECTIONS:
                value = _with_ids(value or [])
            setattr(user, name, value)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def delete_user(db: Session, user_id: str) -> None:
        user = UserService.get_user(db, user_id)
        db.delete(user)
        db.commit()

    # ============================================
    # Skills
    # ============================================

    @staticmethod
    def add_skill(db: Session, user_id: str, skill: str) -> UserProfile:
        user = UserService.get_user(db, user_id)
        skill = skill.strip()
        if skill and skill not in (user.skills or []):
            user.skills = [*(user.skills or []), skill]
            flag_modified(user, "skills")
            db.commit()
            db.refresh(user)
        return user

    @staticmethod
    def remove_skill(db: Session, user_id: str, skill: str) -> UserProfile:
        user = UserService.get_user(db, user_id)
        user.skills = [s for s in user.skills or [] if s != skill]
        flag_modified(user, "skills")
        db.commit()
        db.refresh(user)
        return user

    # ============================================
    # Experience / education / projects / certifications
    # ============================================

    @staticmethod
    def add_entry(db: Session, user_id: str, section: str, entry: dict) -> dict:
        user = UserService.get_user(db, user_id)
        item = {**entry, "id": str(uuid.uuid4())}
        setattr(user, section, [*(getattr(user, section) or []), item])
        flag_modified(user, section)
        db.commit()
        return item

    @staticmethod
    def update_entry(db: Session, user_id: str, section: str, entry_id: str, entry: dict) -> dict:
        user = UserService.get_user(db, user_id)
        entries = list(getattr(user, section) or [])
        for i, existing in enumerate(entries):
            if existing.get("id") == entry_id:
                entries[i] = {**entry, "id": entry_id}
                break
        else:
            raise NotFoundError(f"{section} entry {entry_id} not found")

        setattr(user, section, entries)
        flag_modified(user, section)
        db.commit()
        return entries[i]

    @staticmethod
    def remove_entry(db: Session, user_id: str, section: str, entry_id: str) -> None:
        user = UserService.get_user(db, user_id)
        entries = getattr(user, section) or []
        remaining = [e for e in entries if e.get("id") != entry_id]
        if len(remaining) == len(entries):
            raise NotFoundError(f"{section} entry {entry_id} not found")
        setattr(user, section, remaining)
        flag_modified(user, section)
        db.commit()

    @staticmethod
    def set_resume_url(db: Session, user_id: str, url: str) -> UserProfile:
        user = UserService.get_user(db, user_id)
        user.resume_url = url
        db.commit()
        db.refresh(user)
        return user
