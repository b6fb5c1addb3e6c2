# quiz_routes.py
from fastapi import APIRouter, Depends

from auth import CurrentUser, get_current_user
from database import serialize
from deps import get_quiz_service
from quizzes import QuizService
from schemas import CreateTestRequest, SubmitTestRequest

router = APIRouter(prefix="/api/v1/test", tags=["test"])


@router.post("/create", status_code=201)
def create_test(payload: CreateTestRequest, current: CurrentUser = Depends(get_current_user),
                quizzes: QuizService = Depends(get_quiz_service)):
    test, created = quizzes.create_or_append_test(payload.course_id, current.user_id, payload.questions)
    return {
        "success": True,
        "test": serialize(test),
        "message": "New test created" if created else "Questions added to existing test",
    }


@router.get("/course/{course_id}")
def get_tests_by_course(course_id: str, current: CurrentUser = Depends(get_current_user),
                        quizzes: QuizService = Depends(get_quiz_service)):
    return {"success": True, "tests": quizzes.list_tests_for_course(course_id, current.user_id)}


@router.post("/submit")
def submit_test(payload: SubmitTestRequest, current: CurrentUser = Depends(get_current_user),
                quizzes: QuizService = Depends(get_quiz_service)):
    result = quizzes.submit_test(payload.test_id, current.user_id, payload.answers, payload.course_id)
    message = result.pop("message")
    return {"success": True, "result": result, "message": message}


@router.get("/result/{course_id}")
def get_test_result(course_id: str, current: CurrentUser = Depends(get_current_user),
                    quizzes: QuizService = Depends(get_quiz_service)):
    return {"success": True, "result": quizzes.get_latest_result(current.user_id, course_id)}


@router.get("/{test_id}")
def get_test(test_id: str, current: CurrentUser = Depends(get_current_user),
             quizzes: QuizService = Depends(get_quiz_service)):
    return {"success": True, "test": quizzes.get_test(test_id, current.user_id)}


@router.delete("/{test_id}/question/{question_id}")
def delete_question(test_id: str, question_id: str, current: CurrentUser = Depends(get_current_user),
                    quizzes: QuizService = Depends(get_quiz_service)):
    test = quizzes.delete_question(test_id, question_id, current.user_id)
    return {"success": True, "test": serialize(test), "message": "Question deleted successfully"}
