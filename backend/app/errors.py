from fastapi import HTTPException


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class BadRequestError(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=400, detail=detail)


class ConflictError(HTTPException):
    """The row changed between read and write; check it still exists and retry."""

    def __init__(self, detail: str = "Record was modified concurrently"):
        super().__init__(status_code=409, detail=detail)
