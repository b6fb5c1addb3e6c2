# course_routes.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from auth import CurrentUser, get_current_user
from courses import CourseService, course_out
from database import serialize
from deps import get_course_service
from schemas import ContentType, CourseFields, CourseLevel, LectureFields
from uploads import allowed_file_fields, staged_uploads

router = APIRouter(prefix="/api/v1/course", tags=["course"])

THUMBNAIL_UPLOAD = [Depends(allowed_file_fields("courseThumbnail"))]
LECTURE_UPLOADS = [Depends(allowed_file_fields("video", "pdf"))]


# -------------------- Courses --------------------
@router.post("", status_code=201, dependencies=THUMBNAIL_UPLOAD)
def create_course(
    course_title: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    sub_title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    course_level: Optional[CourseLevel] = Form(None),
    course_price: Optional[float] = Form(None, ge=0),
    course_thumbnail: Optional[UploadFile] = File(None, alias="courseThumbnail"),
    current: CurrentUser = Depends(get_current_user),
    courses: CourseService = Depends(get_course_service),
):
    fields = CourseFields(
        course_title=course_title,
        category=category,
        sub_title=sub_title,
        description=description,
        course_level=course_level,
        course_price=course_price,
    )
    with staged_uploads((course_thumbnail, "courseThumbnail")) as (thumbnail_path,):
        course = courses.create_course(current.user_id, fields, thumbnail_path)
    return {"success": True, "course": course_out(course), "message": "Course created successfully"}


@router.get("")
def get_creator_courses(current: CurrentUser = Depends(get_current_user),
                        courses: CourseService = Depends(get_course_service)):
    return {"success": True, "courses": [course_out(c) for c in courses.list_creator_courses(current.user_id)]}


@router.get("/search")
def search_courses(
    query: str = "",
    categories: Optional[List[str]] = Query(None),
    sort_by_price: str = "",
    courses: CourseService = Depends(get_course_service),
):
    found = courses.search_courses(query, categories, sort_by_price)
    return {"success": True, "courses": [course_out(c) for c in found]}


@router.get("/published-courses")
def get_published_courses(courses: CourseService = Depends(get_course_service)):
    return {"success": True, "courses": [course_out(c) for c in courses.list_published()]}


@router.get("/lecture/{lecture_id}")
def get_lecture(lecture_id: str, current: CurrentUser = Depends(get_current_user),
                courses: CourseService = Depends(get_course_service)):
    return {"success": True, "lecture": serialize(courses.get_lecture(lecture_id))}


@router.delete("/lecture/{lecture_id}")
def remove_lecture(lecture_id: str, current: CurrentUser = Depends(get_current_user),
                   courses: CourseService = Depends(get_course_service)):
    courses.remove_lecture(lecture_id, current.user_id)
    return {"success": True, "message": "Lecture removed successfully."}


@router.get("/{course_id}")
def get_course(course_id: str, courses: CourseService = Depends(get_course_service)):
    return {"success": True, "course": courses.get_course(course_id)}


@router.put("/{course_id}", dependencies=THUMBNAIL_UPLOAD)
def edit_course(
    course_id: str,
    course_title: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    sub_title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    course_level: Optional[CourseLevel] = Form(None),
    course_price: Optional[float] = Form(None, ge=0),
    course_thumbnail: Optional[UploadFile] = File(None, alias="courseThumbnail"),
    current: CurrentUser = Depends(get_current_user),
    courses: CourseService = Depends(get_course_service),
):
    fields = CourseFields(
        course_title=course_title,
        category=category,
        sub_title=sub_title,
        description=description,
        course_level=course_level,
        course_price=course_price,
    )
    with staged_uploads((course_thumbnail, "courseThumbnail")) as (thumbnail_path,):
        course = courses.edit_course(course_id, current.user_id, fields, thumbnail_path)
    return {"success": True, "course": course_out(course), "message": "Course updated successfully."}


@router.delete("/{course_id}")
def remove_course(course_id: str, current: CurrentUser = Depends(get_current_user),
                  courses: CourseService = Depends(get_course_service)):
    courses.remove_course(course_id, current.user_id)
    return {"success": True, "message": "Course and all associated content deleted successfully"}


@router.patch("/{course_id}")
def toggle_publish(course_id: str, publish: bool = Query(...),
                   current: CurrentUser = Depends(get_current_user),
                   courses: CourseService = Depends(get_course_service)):
    course = courses.toggle_publish(course_id, current.user_id, publish)
    message = "Course published successfully" if course["is_published"] else "Course unpublished successfully"
    return {"success": True, "message": message, "course": course_out(course)}


@router.post("/{course_id}/enroll")
def enroll(course_id: str, current: CurrentUser = Depends(get_current_user),
           courses: CourseService = Depends(get_course_service)):
    course = courses.enroll(course_id, current.user_id)
    return {"success": True, "message": "Enrolled successfully", "course": course_out(course)}


# -------------------- Lectures --------------------
@router.post("/{course_id}/lecture", status_code=201, dependencies=LECTURE_UPLOADS)
def create_lecture(
    course_id: str,
    lecture_title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    content_type: Optional[ContentType] = Form(None),
    text_content: Optional[str] = Form(None),
    is_preview_free: bool = Form(False),
    video: Optional[UploadFile] = File(None),
    pdf: Optional[UploadFile] = File(None),
    current: CurrentUser = Depends(get_current_user),
    courses: CourseService = Depends(get_course_service),
):
    fields = LectureFields(
        lecture_title=lecture_title,
        description=description,
        content_type=content_type,
        text_content=text_content,
        is_preview_free=is_preview_free,
    )
    with staged_uploads((video, "video"), (pdf, "pdf")) as (video_path, pdf_path):
        lecture = courses.create_lecture(course_id, current.user_id, fields, video_path, pdf_path)
    return {"success": True, "lecture": serialize(lecture), "message": "Lecture created successfully"}


@router.get("/{course_id}/lecture")
def get_course_lectures(course_id: str, current: CurrentUser = Depends(get_current_user),
                        courses: CourseService = Depends(get_course_service)):
    return {"success": True, "lectures": serialize(courses.list_course_lectures(course_id))}


@router.post("/{course_id}/lecture/{lecture_id}", dependencies=LECTURE_UPLOADS)
def edit_lecture(
    course_id: str,
    lecture_id: str,
    lecture_title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    content_type: Optional[ContentType] = Form(None),
    text_content: Optional[str] = Form(None),
    is_preview_free: Optional[bool] = Form(None),
    video: Optional[UploadFile] = File(None),
    pdf: Optional[UploadFile] = File(None),
    current: CurrentUser = Depends(get_current_user),
    courses: CourseService = Depends(get_course_service),
):
    fields = LectureFields(
        lecture_title=lecture_title,
        description=description,
        content_type=content_type,
        text_content=text_content,
        is_preview_free=is_preview_free,
    )
    with staged_uploads((video, "video"), (pdf, "pdf")) as (video_path, pdf_path):
        lecture = courses.edit_lecture(lecture_id, current.user_id, fields, video_path, pdf_path)
    return {"success": True, "lecture": serialize(lecture), "message": "Lecture updated successfully"}
