# deps.py
"""FastAPI dependencies wiring services to the database, media host and mailer."""
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from pymongo.database import Database

from courses import CourseService
from database import get_db
from mailer import Mailer, build_mailer
from quizzes import QuizService
from storage import MediaStore, get_media_store
from users import UserService


@lru_cache()
def get_mailer() -> Optional[Mailer]:
    return build_mailer()


def get_user_service(
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
    mailer: Optional[Mailer] = Depends(get_mailer),
) -> UserService:
    return UserService(db, media, mailer)


def get_course_service(
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
) -> CourseService:
    return CourseService(db, media)


def get_quiz_service(db: Database = Depends(get_db)) -> QuizService:
    return QuizService(db)
