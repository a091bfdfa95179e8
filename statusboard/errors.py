"""Domain errors surfaced to API callers."""


class StatusBoardError(Exception):
    """Base error carrying an HTTP status and a stable machine-readable code."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class NotFoundError(StatusBoardError):
    status_code = 404
    code = "NOT_FOUND"
