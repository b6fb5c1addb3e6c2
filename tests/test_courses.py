"""
Course and lecture lifecycle: creation, search, publishing, media replacement
and the delete cascade
"""

import pytest

from conftest import make_file
from courses import course_out
from errors import Forbidden, InvalidState, MissingContent, NotFound, UploadFailed, ValidationError
from schemas import CourseFields, LectureFields

pytestmark = pytest.mark.unit


def add_course(service, creator, title, category, price=0, publish=False, with_lecture=True):
    course = service.create_course(
        creator["_id"],
        CourseFields(course_title=title, category=category, course_price=price),
    )
    if with_lecture:
        service.create_lecture(
            course["_id"], creator["_id"],
            LectureFields(lecture_title="L1", description="d", content_type="text", text_content="t"),
        )
    if publish:
        service.toggle_publish(course["_id"], creator["_id"], True)
    return course


def content_fields(lecture):
    return {f for f in ("video_url", "pdf_url", "text_content") if lecture.get(f)}


# ============================================
# Courses
# ============================================

def test_create_course_defaults(course, instructor):
    assert course["creator"] == instructor["_id"]
    assert course["is_published"] is False
    assert course["lectures"] == []
    assert course["enrolled_students"] == []
    assert course_out(course)["total_lectures"] == 0


def test_create_course_requires_title_and_category(course_service, instructor):
    with pytest.raises(ValidationError, match="Course title and category are required."):
        course_service.create_course(instructor["_id"], CourseFields(course_title="Only title"))


def test_create_course_with_thumbnail(course_service, instructor, media, tmp_path):
    doc = course_service.create_course(
        instructor["_id"],
        CourseFields(course_title="Art", category="Design"),
        make_file(tmp_path, "thumb.png"),
    )

    assert doc["course_thumbnail"].startswith("https://media.test/")
    assert doc["course_thumbnail_key"] == media.uploads[0][1]


def test_failed_thumbnail_upload_creates_nothing(course_service, instructor, media, mongo, tmp_path):
    media.fail_uploads = True

    with pytest.raises(UploadFailed):
        course_service.create_course(
            instructor["_id"],
            CourseFields(course_title="Art", category="Design"),
            make_file(tmp_path, "thumb.png"),
        )

    assert mongo["course"].count_documents({}) == 0


def test_edit_course_replaces_thumbnail_once(course_service, course, instructor, media, tmp_path):
    first = course_service.edit_course(course["_id"], instructor["_id"], CourseFields(),
                                       make_file(tmp_path, "one.png"))
    second = course_service.edit_course(course["_id"], instructor["_id"], CourseFields(),
                                        make_file(tmp_path, "two.png"))

    assert media.deleted_keys() == [first["course_thumbnail_key"]]
    assert second["course_thumbnail_key"] != first["course_thumbnail_key"]
    assert second["course_title"] == "Python Basics"


def test_edit_course_only_changes_given_fields(course_service, course, instructor):
    updated = course_service.edit_course(course["_id"], instructor["_id"], CourseFields(course_price=35))

    assert updated["course_price"] == 35
    assert updated["course_title"] == "Python Basics"
    assert updated["category"] == "Programming"


def test_edit_course_by_other_user(course_service, course, student):
    with pytest.raises(Forbidden):
        course_service.edit_course(course["_id"], student["_id"], CourseFields(course_title="Mine now"))


def test_get_unknown_course(course_service, new_id):
    with pytest.raises(NotFound, match="Course not found!"):
        course_service.get_course(new_id())


def test_get_course_populates_relations(course_service, course, instructor, text_lecture):
    out = course_service.get_course(course["_id"])

    assert out["creator"]["name"] == "Ada Lovelace"
    assert [l["_id"] for l in out["lectures"]] == [str(text_lecture["_id"])]
    assert out["total_lectures"] == 1


# ============================================
# Publishing & Enrollment
# ============================================

def test_publish_without_lectures_is_rejected(course_service, course, instructor, mongo):
    with pytest.raises(InvalidState):
        course_service.toggle_publish(course["_id"], instructor["_id"], True)

    assert mongo["course"].find_one({"_id": course["_id"]})["is_published"] is False


def test_publish_and_unpublish(course_service, course, instructor, text_lecture):
    published = course_service.toggle_publish(course["_id"], instructor["_id"], True)
    assert published["is_published"] is True

    hidden = course_service.toggle_publish(course["_id"], instructor["_id"], False)
    assert hidden["is_published"] is False


def test_removing_last_lecture_unpublishes(course_service, course, instructor, text_lecture, mongo):
    course_service.toggle_publish(course["_id"], instructor["_id"], True)

    course_service.remove_lecture(text_lecture["_id"], instructor["_id"])

    stored = mongo["course"].find_one({"_id": course["_id"]})
    assert stored["lectures"] == []
    assert stored["is_published"] is False


def test_enroll_is_idempotent(course_service, instructor, student, mongo):
    course = add_course(course_service, instructor, "Go", "Programming", publish=True)

    course_service.enroll(course["_id"], student["_id"])
    updated = course_service.enroll(course["_id"], student["_id"])

    assert updated["enrolled_students"] == [student["_id"]]
    assert mongo["user"].find_one({"_id": student["_id"]})["enrolled_courses"] == [course["_id"]]


def test_enroll_in_draft_course(course_service, course, student):
    with pytest.raises(InvalidState):
        course_service.enroll(course["_id"], student["_id"])


# ============================================
# Search
# ============================================

@pytest.fixture
def catalog(course_service, instructor):
    add_course(course_service, instructor, "Python for Data", "Data", price=50, publish=True)
    add_course(course_service, instructor, "Intro to Python", "Programming", price=10, publish=True)
    add_course(course_service, instructor, "Watercolor", "Art", price=30, publish=True)
    add_course(course_service, instructor, "Python Drafts", "Programming", price=5)


def titles(courses):
    return [c["course_title"] for c in courses]


def test_search_matches_title_case_insensitively(course_service, catalog):
    result = course_service.search_courses("python")

    assert sorted(titles(result)) == ["Intro to Python", "Python for Data"]


def test_search_filters_categories_and_sorts(course_service, catalog):
    result = course_service.search_courses("", ["Programming", "Art"], "high")

    assert titles(result) == ["Watercolor", "Intro to Python"]


def test_search_sort_low(course_service, catalog):
    assert titles(course_service.search_courses(sort_by_price="low")) == [
        "Intro to Python", "Watercolor", "Python for Data",
    ]


def test_search_treats_query_literally(course_service, catalog):
    assert course_service.search_courses("Python (") == []


def test_list_published_and_creator_courses(course_service, catalog, instructor):
    assert len(course_service.list_published()) == 3
    assert len(course_service.list_creator_courses(instructor["_id"])) == 4


# ============================================
# Lectures
# ============================================

def test_create_video_lecture(course_service, course, instructor, media, mongo, tmp_path):
    lecture = course_service.create_lecture(
        course["_id"], instructor["_id"],
        LectureFields(lecture_title="Setup", description="Install", content_type="video"),
        video_path=make_file(tmp_path, "setup.mp4"),
    )

    assert media.uploads == [("video", lecture["video_key"])]
    assert content_fields(lecture) == {"video_url"}
    assert mongo["course"].find_one({"_id": course["_id"]})["lectures"] == [lecture["_id"]]


def test_create_lecture_requires_details(course_service, course, instructor):
    with pytest.raises(ValidationError, match="Please provide lecture title, description, and content type"):
        course_service.create_lecture(course["_id"], instructor["_id"], LectureFields(lecture_title="x"))


@pytest.mark.parametrize("content_type", ["video", "pdf", "text"])
def test_create_lecture_requires_matching_content(course_service, course, instructor, content_type):
    fields = LectureFields(lecture_title="x", description="y", content_type=content_type)

    with pytest.raises(MissingContent, match=f"Missing required content for {content_type} type lecture"):
        course_service.create_lecture(course["_id"], instructor["_id"], fields)


def test_create_lecture_on_someone_elses_course(course_service, course, student):
    fields = LectureFields(lecture_title="x", description="y", content_type="text", text_content="z")

    with pytest.raises(Forbidden):
        course_service.create_lecture(course["_id"], student["_id"], fields)


def test_lectures_keep_insertion_order(course_service, course, instructor):
    for title in ("one", "two", "three"):
        course_service.create_lecture(
            course["_id"], instructor["_id"],
            LectureFields(lecture_title=title, description="d", content_type="text", text_content=title),
        )

    assert [l["lecture_title"] for l in course_service.list_course_lectures(course["_id"])] == [
        "one", "two", "three",
    ]


def test_switch_lecture_from_text_to_pdf(course_service, text_lecture, instructor, tmp_path):
    updated = course_service.edit_lecture(
        text_lecture["_id"], instructor["_id"],
        LectureFields(content_type="pdf"),
        pdf_path=make_file(tmp_path, "notes.pdf"),
    )

    assert updated["content_type"] == "pdf"
    assert content_fields(updated) == {"pdf_url"}
    assert updated["text_content"] is None


def test_switch_lecture_type_requires_new_content(course_service, text_lecture, instructor):
    with pytest.raises(MissingContent):
        course_service.edit_lecture(text_lecture["_id"], instructor["_id"], LectureFields(content_type="video"))


def test_switch_from_video_releases_old_media(course_service, course, instructor, media, tmp_path):
    lecture = course_service.create_lecture(
        course["_id"], instructor["_id"],
        LectureFields(lecture_title="v", description="d", content_type="video"),
        video_path=make_file(tmp_path, "v.mp4"),
    )

    updated = course_service.edit_lecture(
        lecture["_id"], instructor["_id"],
        LectureFields(content_type="text", text_content="now text"),
    )

    assert media.deleted_keys() == [lecture["video_key"]]
    assert content_fields(updated) == {"text_content"}
    assert updated["video_key"] is None


def test_replace_video_deletes_previous_upload(course_service, course, instructor, media, tmp_path):
    lecture = course_service.create_lecture(
        course["_id"], instructor["_id"],
        LectureFields(lecture_title="v", description="d", content_type="video"),
        video_path=make_file(tmp_path, "v1.mp4"),
    )

    updated = course_service.edit_lecture(
        lecture["_id"], instructor["_id"], LectureFields(lecture_title="v2"),
        video_path=make_file(tmp_path, "v2.mp4"),
    )

    assert media.deleted_keys() == [lecture["video_key"]]
    assert updated["video_key"] != lecture["video_key"]
    assert updated["lecture_title"] == "v2"


def test_remove_lecture_by_other_user(course_service, text_lecture, student, mongo):
    with pytest.raises(Forbidden):
        course_service.remove_lecture(text_lecture["_id"], student["_id"])

    assert mongo["lecture"].count_documents({}) == 1


def test_remove_orphaned_lecture_is_refused(course_service, student, mongo):
    lecture_id = mongo["lecture"].insert_one({
        "lecture_title": "Stray", "description": "d", "content_type": "text", "text_content": "x",
    }).inserted_id

    with pytest.raises(NotFound, match="Course not found!"):
        course_service.remove_lecture(lecture_id, student["_id"])

    assert mongo["lecture"].count_documents({"_id": lecture_id}) == 1


def test_edit_lecture_details_only(course_service, text_lecture, instructor, media):
    updated = course_service.edit_lecture(
        text_lecture["_id"], instructor["_id"],
        LectureFields(lecture_title="Renamed", is_preview_free=True),
    )

    assert updated["lecture_title"] == "Renamed"
    assert updated["is_preview_free"] is True
    assert updated["text_content"] == "Hello"
    assert media.deletes == []


# ============================================
# Cascade
# ============================================

def test_remove_course_cascades(course_service, quiz_service, course, instructor, student, media, mongo, tmp_path):
    video = course_service.create_lecture(
        course["_id"], instructor["_id"],
        LectureFields(lecture_title="v", description="d", content_type="video"),
        video_path=make_file(tmp_path, "v.mp4"),
    )
    course_service.create_lecture(
        course["_id"], instructor["_id"],
        LectureFields(lecture_title="t", description="d", content_type="text", text_content="x"),
    )
    course_service.toggle_publish(course["_id"], instructor["_id"], True)
    course_service.enroll(course["_id"], student["_id"])
    mongo["test"].insert_one({"course_id": course["_id"], "created_by": instructor["_id"], "questions": []})

    course_service.remove_course(course["_id"], instructor["_id"])

    assert mongo["course"].count_documents({}) == 0
    assert mongo["lecture"].count_documents({}) == 0
    assert mongo["test"].count_documents({}) == 0
    assert mongo["user"].find_one({"_id": student["_id"]})["enrolled_courses"] == []
    assert media.deleted_keys() == [video["video_key"]]


def test_remove_course_survives_media_failures(course_service, course, instructor, media, mongo, tmp_path):
    course_service.edit_course(course["_id"], instructor["_id"], CourseFields(), make_file(tmp_path, "t.png"))
    course_service.create_lecture(
        course["_id"], instructor["_id"],
        LectureFields(lecture_title="p", description="d", content_type="pdf"),
        pdf_path=make_file(tmp_path, "p.pdf"),
    )
    media.fail_deletes = True

    course_service.remove_course(course["_id"], instructor["_id"])

    assert mongo["course"].count_documents({}) == 0
    assert mongo["lecture"].count_documents({}) == 0
    assert len(media.deletes) == 2


def test_remove_course_by_other_user(course_service, course, student, mongo):
    with pytest.raises(Forbidden):
        course_service.remove_course(course["_id"], student["_id"])

    assert mongo["course"].count_documents({}) == 1
