"""
Database Schemas

MongoDB collection schemas and request bodies as Pydantic models.

Each collection model's name is lower-cased for the collection name:
- User -> "user" collection
- Course -> "course" collection
- Lecture -> "lecture" collection
- Test -> "test" collection
- TestResult -> "testresult" collection

References to other documents are stored as ObjectId values.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

PASS_MARK = 70


class Role(str, Enum):
    instructor = "instructor"
    student = "student"


class CourseLevel(str, Enum):
    beginner = "Beginner"
    medium = "Medium"
    advance = "Advance"


class ContentType(str, Enum):
    video = "video"
    pdf = "pdf"
    text = "text"


class MediaKind(str, Enum):
    video = "video"
    pdf = "pdf"
    image = "image"


class _Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, use_enum_values=True)


# -------------------- Collections --------------------
class User(_Document):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, unique")
    password_hash: Optional[str] = Field(None, description="BCrypt password hash, absent for Google-only accounts")
    google_id: Optional[str] = Field(None, description="Google account id, unique when present")
    role: Role = Field("student", description="instructor | student")
    photo_url: str = Field("", description="Profile photo URL")
    photo_key: Optional[str] = Field(None, description="Media host deletion key for the photo")
    enrolled_courses: List[Any] = Field(default_factory=list, description="Course ObjectIds")


class Course(_Document):
    """
    Courses collection schema
    Collection name: "course"
    """
    course_title: str
    category: str
    sub_title: Optional[str] = None
    description: Optional[str] = None
    course_level: Optional[CourseLevel] = None
    course_price: Optional[float] = Field(None, ge=0)
    course_thumbnail: Optional[str] = None
    course_thumbnail_key: Optional[str] = None
    lectures: List[Any] = Field(default_factory=list, description="Lecture ObjectIds, in order")
    enrolled_students: List[Any] = Field(default_factory=list, description="User ObjectIds")
    creator: Any = Field(..., description="User ObjectId of the owner")
    is_published: bool = False


class Lecture(_Document):
    """
    Lectures collection schema
    Collection name: "lecture"

    Only the fields of ``content_type`` are populated.
    """
    lecture_title: str
    description: str
    content_type: ContentType
    course_id: Any = None
    video_url: Optional[str] = None
    video_key: Optional[str] = None
    pdf_url: Optional[str] = None
    pdf_key: Optional[str] = None
    text_content: Optional[str] = None
    is_preview_free: bool = False


class Test(_Document):
    """
    Tests collection schema
    Collection name: "test" (one per course)
    """
    course_id: Any
    created_by: Any
    questions: List[Any] = Field(default_factory=list, description="{_id, question, options, correct_answer}")


class AnswerRecord(BaseModel):
    question_id: str
    selected_answer: Optional[str] = None
    is_correct: bool = False
    is_valid: bool = True


class TestResult(_Document):
    """
    Test results collection schema
    Collection name: "testresult" (append only)
    """
    user_id: Any
    course_id: Any
    test_id: Any
    score: float = Field(..., ge=0, le=100)
    passed: bool
    answers: List[AnswerRecord] = Field(default_factory=list)
    completed_at: datetime


# -------------------- Request Schemas --------------------
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class CourseFields(BaseModel):
    """Editable course fields; every field is optional on edit"""
    course_title: Optional[str] = None
    sub_title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    course_level: Optional[CourseLevel] = None
    course_price: Optional[float] = Field(None, ge=0)

    model_config = ConfigDict(use_enum_values=True)


class LectureFields(BaseModel):
    lecture_title: Optional[str] = None
    description: Optional[str] = None
    content_type: Optional[ContentType] = None
    text_content: Optional[str] = None
    is_preview_free: Optional[bool] = None

    model_config = ConfigDict(use_enum_values=True)


class QuestionIn(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer: str = Field(..., min_length=1)


class CreateTestRequest(BaseModel):
    course_id: str
    questions: List[QuestionIn] = Field(..., min_length=1)


class AnswerIn(BaseModel):
    question_id: str
    selected_answer: Optional[str] = None


class SubmitTestRequest(BaseModel):
    test_id: str
    course_id: Optional[str] = None
    answers: List[AnswerIn] = Field(default_factory=list)


class FederatedProfile(BaseModel):
    """Verified identity delivered by Google"""
    google_id: str
    email: EmailStr
    name: str
    photo_url: str = ""
