"""
Pytest configuration and fixtures
"""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

# Test environment must be in place before application modules are imported
os.environ.update({
    "JWT_SECRET": "test-secret",
    "APP_ENV": "development",
    "CLIENT_URL": "http://client.test",
    "UPLOAD_FOLDER": tempfile.mkdtemp(prefix="lms-uploads-"),
})
os.environ.pop("DATABASE_URL", None)

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import hash_password, issue_token
from courses import CourseService
from database import get_db
from deps import get_mailer
from errors import MediaError, UploadFailed
from main import app
from quizzes import QuizService
from schemas import CourseFields, LectureFields, QuestionIn
from storage import MediaAsset, get_media_store
from users import UserService


class FakeMediaStore:
    """Records uploads and deletes instead of talking to the media host"""

    def __init__(self):
        self.uploads = []
        self.deletes = []
        self.fail_uploads = False
        self.fail_deletes = False
        self._counter = 0

    def upload(self, local_path, kind="image"):
        path = Path(local_path)
        path.unlink(missing_ok=True)
        if self.fail_uploads:
            raise UploadFailed(f"Failed to upload {kind} after 3 attempts")
        self._counter += 1
        key = f"lms_{kind}/{kind}_{self._counter}"
        self.uploads.append((kind, key))
        return MediaAsset(url=f"https://media.test/{key}", delete_key=key)

    def delete(self, delete_key, kind="image"):
        self.deletes.append((kind, delete_key))
        if self.fail_deletes:
            raise MediaError("Failed to delete media: endpoint unreachable")
        return True

    def deleted_keys(self):
        return [key for _, key in self.deletes]


def make_file(directory: Path, name: str, content: bytes = b"data") -> Path:
    path = directory / name
    path.write_bytes(content)
    return path


# ============================================
# Database & Collaborators
# ============================================

@pytest.fixture
def mongo():
    return mongomock.MongoClient()["lms_test"]


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def user_service(mongo, media):
    return UserService(mongo, media, mailer=None, production=False)


@pytest.fixture
def course_service(mongo, media):
    return CourseService(mongo, media)


@pytest.fixture
def quiz_service(mongo):
    return QuizService(mongo)


def _insert_user(mongo, name, email, role):
    now = datetime.now(timezone.utc)
    doc = {
        "name": name,
        "email": email,
        "password_hash": hash_password("secret123"),
        "role": role,
        "photo_url": "",
        "enrolled_courses": [],
        "created_at": now,
        "updated_at": now,
    }
    doc["_id"] = mongo["user"].insert_one(doc).inserted_id
    return doc


@pytest.fixture
def instructor(mongo):
    return _insert_user(mongo, "Ada Lovelace", "ada@school.org", "instructor")


@pytest.fixture
def student(mongo):
    return _insert_user(mongo, "Sam Learner", "sam@school.org", "student")


@pytest.fixture
def course(course_service, instructor):
    return course_service.create_course(
        instructor["_id"],
        CourseFields(course_title="Python Basics", category="Programming", course_price=20),
    )


@pytest.fixture
def text_lecture(course_service, course, instructor):
    return course_service.create_lecture(
        course["_id"],
        instructor["_id"],
        LectureFields(lecture_title="Intro", description="Welcome", content_type="text", text_content="Hello"),
    )


@pytest.fixture
def quiz(quiz_service, course, instructor):
    questions = [
        QuestionIn(question=f"Q{i}?", options=["a", "b", "c"], correct_answer="a")
        for i in range(4)
    ]
    test, _ = quiz_service.create_or_append_test(course["_id"], instructor["_id"], questions)
    return test


# ============================================
# HTTP
# ============================================

@pytest.fixture
def client(mongo, media):
    app.dependency_overrides[get_db] = lambda: mongo
    app.dependency_overrides[get_media_store] = lambda: media
    app.dependency_overrides[get_mailer] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def login_as(client, user):
    """Attach a token cookie for ``user`` to the test client"""
    client.cookies.set("token", issue_token(user["_id"], user["role"]))
    return client


@pytest.fixture
def new_id():
    return lambda: str(ObjectId())
