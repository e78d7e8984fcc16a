from fastapi import HTTPException


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found") -> None:
        super().__init__(status_code=404, detail=detail)


class InvalidTransitionError(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=409, detail=detail)


class ValidationFailedError(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=400, detail=detail)


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "Not allowed") -> None:
        super().__init__(status_code=403, detail=detail)
