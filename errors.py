"""
Application error taxonomy.

Services raise these; the handlers registered in main.py turn them into
``{"success": false, "message": ...}`` responses with ``status_code``.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str = "Something went wrong"):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400


class InvalidState(ValidationError):
    pass


class MissingContent(ValidationError):
    pass


class TooLarge(ValidationError):
    pass


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class MediaError(AppError):
    status_code = 500


class UploadFailed(MediaError):
    pass
