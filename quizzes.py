# quizzes.py
import logging
from typing import List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, serialize, to_object_id, utcnow
from errors import Forbidden, NotFound, ValidationError
from schemas import PASS_MARK, AnswerIn, AnswerRecord, QuestionIn, TestResult

logger = logging.getLogger(__name__)

PASSED_MESSAGE = "Congratulations! You've passed the test!"
FAILED_MESSAGE = "Keep practicing! You can try again."


def score_answers(questions: List[dict], answers: List[AnswerIn]) -> Tuple[int, List[AnswerRecord]]:
    """
    Mark each answer against the test's questions.

    Answers naming an unknown question, or a question already answered,
    are kept as invalid and never count as correct.
    """
    by_id = {str(q["_id"]): q for q in questions}
    seen = set()
    correct = 0
    records = []
    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None or answer.question_id in seen:
            records.append(AnswerRecord(
                question_id=answer.question_id,
                selected_answer=answer.selected_answer,
                is_correct=False,
                is_valid=False,
            ))
            continue

        seen.add(answer.question_id)
        is_correct = answer.selected_answer == question.get("correct_answer")
        if is_correct:
            correct += 1
        records.append(AnswerRecord(
            question_id=answer.question_id,
            selected_answer=answer.selected_answer,
            is_correct=is_correct,
        ))
    return correct, records


def grade(correct: int, total: int) -> Tuple[float, bool]:
    """Percentage score rounded for display; the pass check uses the exact value"""
    percent = correct * 100 / total
    return round(percent, 2), percent >= PASS_MARK


class QuizService:
    """Course tests: questions, submissions and results"""

    def __init__(self, db: Database):
        self.db = db
        self.courses = db["course"]
        self.users = db["user"]
        self.tests = db["test"]
        self.results = db["testresult"]

    def _test(self, test_id) -> dict:
        test = self.tests.find_one({"_id": to_object_id(test_id, "Test")})
        if not test:
            raise NotFound("Test not found")
        return test

    def _public_test(self, test: dict, requester_id) -> dict:
        out = serialize(test)
        if str(test.get("created_by")) != str(requester_id):
            for question in out.get("questions", []):
                question.pop("correct_answer", None)
        return out

    def create_or_append_test(self, course_id, creator_id, questions: List[QuestionIn]) -> Tuple[dict, bool]:
        """
        Create the course's test, or append ``questions`` to the existing one.

        Returns the test and whether it was newly created. A unique index
        on course_id plus an upsert keeps it to one test per course.
        """
        course = self.courses.find_one({"_id": to_object_id(course_id, "Course")})
        if not course:
            raise NotFound("Course not found")
        if str(course.get("creator")) != str(creator_id):
            raise Forbidden("You are not authorized to create tests for this course")

        docs = []
        for q in questions:
            if q.correct_answer not in q.options:
                raise ValidationError(f"Correct answer for '{q.question}' must be one of its options")
            docs.append({"_id": ObjectId(), **q.model_dump()})

        now = utcnow()
        update = {
            "$push": {"questions": {"$each": docs}},
            "$setOnInsert": {"created_by": course["creator"], "created_at": now},
            "$set": {"updated_at": now},
        }
        try:
            before = self.tests.find_one_and_update(
                {"course_id": course["_id"]}, update, upsert=True, return_document=ReturnDocument.BEFORE
            )
        except DuplicateKeyError:
            # lost an insert race; the test exists now, so this appends
            before = self.tests.find_one_and_update(
                {"course_id": course["_id"]}, update, upsert=True, return_document=ReturnDocument.BEFORE
            )

        test = self.tests.find_one({"course_id": course["_id"]})
        created = before is None
        logger.info(f"{'Created' if created else 'Extended'} test {test['_id']} for course {course['_id']} "
                    f"with {len(docs)} questions")
        return test, created

    def list_tests_for_course(self, course_id, requester_id) -> List[dict]:
        tests = list(self.tests.find({"course_id": to_object_id(course_id, "Course")}).sort("created_at", DESCENDING))
        creator_ids = list({t.get("created_by") for t in tests})
        creators = {u["_id"]: u for u in self.users.find({"_id": {"$in": creator_ids}}, {"name": 1, "email": 1})}

        out = []
        for test in tests:
            item = self._public_test(test, requester_id)
            creator = creators.get(test.get("created_by"))
            if creator:
                item["created_by"] = serialize(creator)
            out.append(item)
        return out

    def get_test(self, test_id, requester_id) -> dict:
        test = self._test(test_id)
        out = self._public_test(test, requester_id)
        course = self.courses.find_one({"_id": test.get("course_id")}, {"course_title": 1})
        if course:
            out["course_id"] = serialize(course)
        creator = self.users.find_one({"_id": test.get("created_by")}, {"name": 1, "email": 1})
        if creator:
            out["created_by"] = serialize(creator)
        return out

    def delete_question(self, test_id, question_id, requester_id) -> dict:
        test = self._test(test_id)
        if str(test.get("created_by")) != str(requester_id):
            raise Forbidden("You are not authorized to modify this test")

        try:
            question_oid = ObjectId(str(question_id))
        except InvalidId:
            raise NotFound("Question not found")
        if not any(q.get("_id") == question_oid for q in test.get("questions", [])):
            raise NotFound("Question not found")

        return self.tests.find_one_and_update(
            {"_id": test["_id"]},
            {"$pull": {"questions": {"_id": question_oid}}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    def submit_test(self, test_id, user_id, answers: List[AnswerIn], course_id: Optional[str] = None) -> dict:
        """Score a submission and store it as a new result"""
        test = self._test(test_id)
        if course_id and str(test.get("course_id")) != str(course_id):
            raise ValidationError("This test does not belong to the given course")

        questions = test.get("questions", [])
        if not questions:
            raise ValidationError("This test has no questions")

        correct, records = score_answers(questions, answers)
        total = len(questions)
        score, passed = grade(correct, total)

        result = TestResult(
            user_id=to_object_id(user_id, "User"),
            course_id=test["course_id"],
            test_id=test["_id"],
            score=score,
            passed=passed,
            answers=records,
            completed_at=utcnow(),
        )
        create_document(self.db, "testresult", result)
        logger.info(f"User {user_id} scored {score} on test {test['_id']}")

        return {
            "score": score,
            "passed": passed,
            "correct_answers": correct,
            "total_questions": total,
            "answers": [r.model_dump() for r in records],
            "message": PASSED_MESSAGE if passed else FAILED_MESSAGE,
        }

    def get_latest_result(self, user_id, course_id) -> Optional[dict]:
        """The most recent result for the pair, or None when there is none yet"""
        result = self.results.find_one(
            {"user_id": to_object_id(user_id, "User"), "course_id": to_object_id(course_id, "Course")},
            sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
        )
        if not result:
            return None
        return {
            "score": result["score"],
            "passed": result["passed"],
            "completed_at": result.get("completed_at"),
        }
