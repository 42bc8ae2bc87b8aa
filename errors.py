import logging
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

import settings

logger = logging.getLogger('uvicorn.error')


class GramsError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class Unauthenticated(GramsError):
    status_code = status.HTTP_303_SEE_OTHER


class Forbidden(GramsError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(GramsError):
    status_code = status.HTTP_404_NOT_FOUND


class PostTooLargeToDelete(GramsError):
    status_code = status.HTTP_409_CONFLICT


class PostValidationError(GramsError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, errors: List[str], message: Optional[str] = None):
        super().__init__("; ".join(errors))
        self.errors = errors
        self.message = message


async def unauthenticated_handler(request: Request, exc: Unauthenticated):
    logger.info(f"Anonymous {request.method} {request.url.path}, redirecting to sign in")
    return RedirectResponse(url=settings.SIGN_IN_PATH, status_code=status.HTTP_303_SEE_OTHER)


async def post_validation_handler(request: Request, exc: PostValidationError):
    # The form is echoed back so the client can re-render it with the errors
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.errors,
            "form": {"message": exc.message or "", "errors": exc.errors},
        },
    )


async def grams_error_handler(request: Request, exc: GramsError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Unauthenticated, unauthenticated_handler)
    app.add_exception_handler(PostValidationError, post_validation_handler)
    app.add_exception_handler(GramsError, grams_error_handler)
