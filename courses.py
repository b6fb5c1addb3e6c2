# courses.py
"""
Course and lecture operations.

Media is uploaded before a record is written, so a failed upload never
leaves a half-created course or lecture. Deletions of remote media during
cleanup are best effort: failures are logged and the database work goes on.
"""
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from database import create_document, serialize, to_object_id, utcnow
from errors import Forbidden, InvalidState, MissingContent, NotFound, ValidationError
from schemas import Course, CourseFields, Lecture, LectureFields
from storage import MediaStore, best_effort_delete

logger = logging.getLogger(__name__)

# content type -> (url field, key field)
MEDIA_FIELDS = {
    "video": ("video_url", "video_key"),
    "pdf": ("pdf_url", "pdf_key"),
}
CONTENT_FIELDS = ("video_url", "video_key", "pdf_url", "pdf_key", "text_content")


def course_out(doc: dict) -> dict:
    out = serialize(doc)
    out["total_lectures"] = len(doc.get("lectures") or [])
    return out


class CourseService:
    def __init__(self, db: Database, media: MediaStore):
        self.db = db
        self.courses = db["course"]
        self.lectures = db["lecture"]
        self.users = db["user"]
        self.tests = db["test"]
        self.media = media

    # -------------------- Helpers --------------------
    def _course(self, course_id) -> dict:
        course = self.courses.find_one({"_id": to_object_id(course_id, "Course")})
        if not course:
            raise NotFound("Course not found!")
        return course

    def _lecture(self, lecture_id) -> dict:
        lecture = self.lectures.find_one({"_id": to_object_id(lecture_id, "Lecture")})
        if not lecture:
            raise NotFound("Lecture not found!")
        return lecture

    @staticmethod
    def _require_owner(course: dict, requester_id) -> None:
        if str(course.get("creator")) != str(requester_id):
            raise Forbidden("You are not authorized to modify this course")

    def _owning_course(self, lecture: dict) -> Optional[dict]:
        course = self.courses.find_one({"lectures": lecture["_id"]})
        if course is None and lecture.get("course_id") is not None:
            course = self.courses.find_one({"_id": lecture["course_id"]})
        return course

    def _attach_creators(self, courses: List[dict]) -> List[dict]:
        creator_ids = {c["creator"] for c in courses if c.get("creator") is not None}
        creators = {
            u["_id"]: {"_id": u["_id"], "name": u.get("name"), "photo_url": u.get("photo_url", "")}
            for u in self.users.find({"_id": {"$in": list(creator_ids)}}, {"name": 1, "photo_url": 1})
        }
        for course in courses:
            course["creator"] = creators.get(course.get("creator"), course.get("creator"))
        return courses

    def _release_lecture_media(self, lecture: dict) -> None:
        for kind, (_, key_field) in MEDIA_FIELDS.items():
            best_effort_delete(self.media, lecture.get(key_field), kind)

    # -------------------- Courses --------------------
    def create_course(self, creator_id, fields: CourseFields, thumbnail_path: Optional[Path] = None) -> dict:
        if not fields.course_title or not fields.category:
            raise ValidationError("Course title and category are required.")

        thumbnail = None
        if thumbnail_path is not None:
            thumbnail = self.media.upload(thumbnail_path, "image")

        course = Course(
            **fields.model_dump(exclude_none=True),
            creator=to_object_id(creator_id, "User"),
            course_thumbnail=thumbnail.url if thumbnail else None,
            course_thumbnail_key=thumbnail.delete_key if thumbnail else None,
        )
        try:
            doc = create_document(self.db, "course", course)
        except Exception:
            if thumbnail:
                best_effort_delete(self.media, thumbnail.delete_key, "image")
            raise
        logger.info(f"Course {doc['_id']} created by {creator_id}")
        return doc

    def search_courses(self, query: str = "", categories: Optional[Iterable[str]] = None,
                       sort_by_price: str = "") -> List[dict]:
        """Published courses matching ``query`` in title, subtitle or category"""
        criteria = {"is_published": True}
        if query:
            pattern = {"$regex": re.escape(query), "$options": "i"}
            criteria["$or"] = [
                {"course_title": pattern},
                {"sub_title": pattern},
                {"category": pattern},
            ]
        categories = [c for c in (categories or []) if c]
        if categories:
            criteria["category"] = {"$in": categories}

        cursor = self.courses.find(criteria)
        if sort_by_price == "low":
            cursor = cursor.sort("course_price", ASCENDING)
        elif sort_by_price == "high":
            cursor = cursor.sort("course_price", DESCENDING)
        return self._attach_creators(list(cursor))

    def list_published(self) -> List[dict]:
        return self._attach_creators(list(self.courses.find({"is_published": True})))

    def list_creator_courses(self, creator_id) -> List[dict]:
        return list(self.courses.find({"creator": to_object_id(creator_id, "User")}))

    def get_course(self, course_id) -> dict:
        """Course with creator, lectures and enrolled students populated"""
        course = self._course(course_id)
        lecture_ids = course.get("lectures", [])
        by_id = {l["_id"]: l for l in self.lectures.find({"_id": {"$in": lecture_ids}})}
        students = list(self.users.find(
            {"_id": {"$in": course.get("enrolled_students", [])}},
            {"name": 1, "email": 1, "photo_url": 1},
        ))

        out = course_out(self._attach_creators([course])[0])
        out["lectures"] = [serialize(by_id[i]) for i in lecture_ids if i in by_id]
        out["enrolled_students"] = serialize(students)
        return out

    def edit_course(self, course_id, requester_id, fields: CourseFields,
                    thumbnail_path: Optional[Path] = None) -> dict:
        course = self._course(course_id)
        self._require_owner(course, requester_id)

        updates = fields.model_dump(exclude_none=True)
        for required in ("course_title", "category"):
            if required in updates and not updates[required]:
                raise ValidationError("Course title and category are required.")

        if thumbnail_path is not None:
            best_effort_delete(self.media, course.get("course_thumbnail_key"), "image")
            thumbnail = self.media.upload(thumbnail_path, "image")
            updates["course_thumbnail"] = thumbnail.url
            updates["course_thumbnail_key"] = thumbnail.delete_key

        updates["updated_at"] = utcnow()
        return self.courses.find_one_and_update(
            {"_id": course["_id"]},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )

    def remove_course(self, course_id, requester_id) -> None:
        """
        Delete a course and everything it owns.

        Remote media goes first and never blocks the delete: thumbnail,
        then each lecture's video/pdf. Then the lecture records, the
        course's test and the course itself. Test results are kept.
        """
        course = self._course(course_id)
        self._require_owner(course, requester_id)

        best_effort_delete(self.media, course.get("course_thumbnail_key"), "image")

        lecture_ids = course.get("lectures", [])
        for lecture in self.lectures.find({"_id": {"$in": lecture_ids}}):
            self._release_lecture_media(lecture)

        self.lectures.delete_many({"_id": {"$in": lecture_ids}})
        self.tests.delete_many({"course_id": course["_id"]})
        self.users.update_many(
            {"enrolled_courses": course["_id"]},
            {"$pull": {"enrolled_courses": course["_id"]}},
        )
        self.courses.delete_one({"_id": course["_id"]})
        logger.info(f"Course {course['_id']} removed with {len(lecture_ids)} lectures")

    def toggle_publish(self, course_id, requester_id, publish: bool) -> dict:
        course = self._course(course_id)
        self._require_owner(course, requester_id)

        if publish and not course.get("lectures"):
            raise InvalidState("Cannot publish a course without lectures")

        return self.courses.find_one_and_update(
            {"_id": course["_id"]},
            {"$set": {"is_published": bool(publish), "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    def enroll(self, course_id, user_id) -> dict:
        course = self._course(course_id)
        if not course.get("is_published"):
            raise InvalidState("Cannot enroll in an unpublished course")

        user_oid = to_object_id(user_id, "User")
        if not self.users.find_one({"_id": user_oid}):
            raise NotFound("User not found")

        self.users.update_one({"_id": user_oid}, {"$addToSet": {"enrolled_courses": course["_id"]}})
        return self.courses.find_one_and_update(
            {"_id": course["_id"]},
            {"$addToSet": {"enrolled_students": user_oid}},
            return_document=ReturnDocument.AFTER,
        )

    # -------------------- Lectures --------------------
    @staticmethod
    def _content_for(content_type: str, fields: LectureFields, video_path, pdf_path):
        """The new content matching ``content_type``, or None"""
        if content_type == "video":
            return video_path
        if content_type == "pdf":
            return pdf_path
        if content_type == "text":
            return fields.text_content or None
        return None

    def create_lecture(self, course_id, requester_id, fields: LectureFields,
                       video_path: Optional[Path] = None, pdf_path: Optional[Path] = None) -> dict:
        if not fields.lecture_title or not fields.description or not fields.content_type:
            raise ValidationError("Please provide lecture title, description, and content type")

        content_type = fields.content_type
        content = self._content_for(content_type, fields, video_path, pdf_path)
        if content is None:
            raise MissingContent(f"Missing required content for {content_type} type lecture")

        course = self._course(course_id)
        self._require_owner(course, requester_id)

        lecture = Lecture(
            lecture_title=fields.lecture_title,
            description=fields.description,
            content_type=content_type,
            course_id=course["_id"],
            is_preview_free=bool(fields.is_preview_free),
        )
        asset = None
        if content_type in MEDIA_FIELDS:
            asset = self.media.upload(content, content_type)
            url_field, key_field = MEDIA_FIELDS[content_type]
            setattr(lecture, url_field, asset.url)
            setattr(lecture, key_field, asset.delete_key)
        else:
            lecture.text_content = content

        try:
            doc = create_document(self.db, "lecture", lecture)
        except Exception:
            if asset:
                best_effort_delete(self.media, asset.delete_key, content_type)
            raise

        self.courses.update_one(
            {"_id": course["_id"]},
            {"$push": {"lectures": doc["_id"]}, "$set": {"updated_at": utcnow()}},
        )
        logger.info(f"Lecture {doc['_id']} ({content_type}) added to course {course['_id']}")
        return doc

    def list_course_lectures(self, course_id) -> List[dict]:
        course = self._course(course_id)
        lecture_ids = course.get("lectures", [])
        by_id = {l["_id"]: l for l in self.lectures.find({"_id": {"$in": lecture_ids}})}
        return [by_id[i] for i in lecture_ids if i in by_id]

    def get_lecture(self, lecture_id) -> dict:
        return self._lecture(lecture_id)

    def edit_lecture(self, lecture_id, requester_id, fields: LectureFields,
                     video_path: Optional[Path] = None, pdf_path: Optional[Path] = None) -> dict:
        """
        Update a lecture's details and, optionally, its content.

        Switching content type needs the new content in the same request.
        New media is uploaded first; the old media (both video and pdf on a
        type switch) is released before the new fields are written.
        """
        lecture = self._lecture(lecture_id)
        course = self._owning_course(lecture)
        if course is None:
            raise NotFound("Course not found!")
        self._require_owner(course, requester_id)

        old_type = lecture.get("content_type")
        new_type = fields.content_type or old_type
        type_changed = new_type != old_type
        content = self._content_for(new_type, fields, video_path, pdf_path)
        if type_changed and content is None:
            raise MissingContent(f"Missing required content for {new_type} type lecture")

        updates = {"updated_at": utcnow()}
        if fields.lecture_title:
            updates["lecture_title"] = fields.lecture_title
        if fields.description:
            updates["description"] = fields.description
        if fields.is_preview_free is not None:
            updates["is_preview_free"] = fields.is_preview_free

        if content is not None:
            asset = None
            if new_type in MEDIA_FIELDS:
                asset = self.media.upload(content, new_type)

            if type_changed:
                self._release_lecture_media(lecture)
                for field in CONTENT_FIELDS:
                    updates[field] = None
                updates["content_type"] = new_type
            elif new_type in MEDIA_FIELDS:
                best_effort_delete(self.media, lecture.get(MEDIA_FIELDS[new_type][1]), new_type)

            if asset:
                url_field, key_field = MEDIA_FIELDS[new_type]
                updates[url_field] = asset.url
                updates[key_field] = asset.delete_key
            else:
                updates["text_content"] = content

        return self.lectures.find_one_and_update(
            {"_id": lecture["_id"]},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )

    def remove_lecture(self, lecture_id, requester_id) -> None:
        lecture = self._lecture(lecture_id)
        course = self._owning_course(lecture)
        if course is None:
            raise NotFound("Course not found!")
        self._require_owner(course, requester_id)

        self._release_lecture_media(lecture)
        self.lectures.delete_one({"_id": lecture["_id"]})

        self.courses.update_many({"lectures": lecture["_id"]}, {"$pull": {"lectures": lecture["_id"]}})
        # a published course may not end up without lectures
        self.courses.update_one(
            {"_id": course["_id"], "is_published": True, "lectures": {"$size": 0}},
            {"$set": {"is_published": False}},
        )
        logger.info(f"Lecture {lecture['_id']} removed")
