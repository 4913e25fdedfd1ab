from datetime import datetime

from pydantic import EmailStr, field_validator

from mockinterview.schemas.base import CamelModel


class Experience(CamelModel):
    id: str | None = None
    title: str
    company: str
    location: str | None = None
    start_date: str = ""
    end_date: str | None = None
    current: bool = False
    description: str = ""


class Education(CamelModel):
    id: str | None = None
    degree: str
    institution: str
    location: str | None = None
    start_date: str = ""
    end_date: str | None = None
    current: bool = False
    description: str | None = None


class Project(CamelModel):
    id: str | None = None
    title: str
    description: str = ""
    technologies: list[str] = []
    url: str | None = None


class Certification(CamelModel):
    id: str | None = None
    name: str
    issuer: str
    date: str = ""
    url: str | None = None


# profile list fields and the schema of their entries
SECTIONS = {
    "experience": Experience,
    "education": Education,
    "projects": Project,
    "certifications": Certification,
}


class UserProfileFields(CamelModel):
    phone: str | None = None
    location: str | None = None
    summary: str | None = None
    skills: list[str] = []
    experience: list[Experience] = []
    education: list[Education] = []
    projects: list[Project] = []
    certifications: list[Certification] = []
    resume_url: str | None = None


class UserProfileCreate(UserProfileFields):
    id: str | None = None
    name: str
    email: EmailStr

    @field_validator("name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field must not be empty")
        return v.strip()


class UserProfileUpdate(CamelModel):
    id: str
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    location: str | None = None
    summary: str | None = None
    skills: list[str] | None = None
    experience: list[Experience] | None = None
    education: list[Education] | None = None
    projects: list[Project] | None = None
    certifications: list[Certification] | None = None
    resume_url: str | None = None

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Field must not be empty")
        return v.strip() if v is not None else v


class UserProfileOut(UserProfileFields):
    id: str
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


class SkillRequest(CamelModel):
    skill: str


class ResumeRequest(CamelModel):
    url: str
