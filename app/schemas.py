"""Request bodies accepted by the API, validated with pydantic."""
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError as PydanticValidationError, field_validator

from app.errors import ValidationError
from app.models.user import ROLES


class RegisterRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: str = "student"

    @field_validator("role")
    @classmethod
    def known_role(cls, value):
        if value not in ROLES:
            raise ValueError(f"role must be one of {', '.join(ROLES)}")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    instructor_id: Optional[int] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    notes: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0)


class QuizCreate(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer: str

    @field_validator("correct_answer")
    @classmethod
    def answer_in_options(cls, value, info):
        options = info.data.get("options") or []
        if value not in options:
            raise ValueError("correct_answer must be one of the options")
        return value


class QuizAnswer(BaseModel):
    answer: str


class EnrollmentCreate(BaseModel):
    course_id: int


class EnrollmentActivate(BaseModel):
    payment_id: int


class PaymentConfirm(BaseModel):
    status: str = "success"

    @field_validator("status")
    @classmethod
    def known_status(cls, value):
        if value not in ("success", "failed"):
            raise ValueError("status must be 'success' or 'failed'")
        return value


class StudentStatus(BaseModel):
    action: str

    @field_validator("action")
    @classmethod
    def known_action(cls, value):
        value = value.lower()
        if value not in ("activate", "suspend"):
            raise ValueError("action must be 'activate' or 'suspend'")
        return value


class ParentLink(BaseModel):
    parent_id: int


def parse(model, data):
    """Validate ``data`` against ``model`` or raise a field-level ValidationError."""
    if data is None:
        raise ValidationError([{"field": "body", "message": "Missing JSON body"}])
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)
