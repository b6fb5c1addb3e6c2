# user_routes.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from auth import CurrentUser, clear_token_cookie, get_current_user, issue_token, set_token_cookie
from config import config
from deps import get_user_service
from schemas import LoginRequest, PasswordResetRequest, RegisterRequest, ResetPasswordRequest
from uploads import allowed_file_fields, staged_uploads
from users import UserService, public_user

router = APIRouter(prefix="/api/v1/user", tags=["user"])


# -------------------- Auth Endpoints --------------------
@router.post("/register", status_code=201)
def register(payload: RegisterRequest, users: UserService = Depends(get_user_service)):
    users.register(payload)
    return {"success": True, "message": "Account created successfully."}


@router.post("/login")
def login(payload: LoginRequest, response: Response, users: UserService = Depends(get_user_service)):
    user = users.authenticate(payload.email, payload.password)
    token = issue_token(user["_id"], user.get("role", "student"), days=config.LOGIN_TOKEN_DAYS)
    set_token_cookie(response, token, config.LOGIN_TOKEN_DAYS)
    return {
        "success": True,
        "message": f"Welcome back {user.get('name')}",
        "user": public_user(user),
    }


@router.get("/logout")
def logout(response: Response):
    clear_token_cookie(response)
    return {"success": True, "message": "Logged out successfully"}


# -------------------- Profile Endpoints --------------------
@router.get("/profile")
def get_profile(current: CurrentUser = Depends(get_current_user),
                users: UserService = Depends(get_user_service)):
    return {"success": True, "user": public_user(users.get(current.user_id))}


@router.put("/profile/update", dependencies=[Depends(allowed_file_fields("profilePhoto"))])
def update_profile(
    name: Optional[str] = Form(None),
    profile_photo: Optional[UploadFile] = File(None, alias="profilePhoto"),
    current: CurrentUser = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    with staged_uploads((profile_photo, "profilePhoto")) as (photo_path,):
        user = users.update_profile(current.user_id, name=name, photo_path=photo_path)
    return {"success": True, "user": public_user(user), "message": "Profile updated successfully."}


# -------------------- Password Reset --------------------
@router.post("/password-reset/request")
def request_password_reset(payload: PasswordResetRequest, users: UserService = Depends(get_user_service)):
    return users.request_password_reset(payload.email)


@router.post("/password-reset/reset")
def reset_password(payload: ResetPasswordRequest, users: UserService = Depends(get_user_service)):
    users.reset_password(payload.token, payload.new_password)
    return {"success": True, "message": "Password has been reset successfully"}
