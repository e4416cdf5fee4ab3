"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dailyquiz.core.config import LOG_LEVEL, QUIZ_TIMEZONE
from dailyquiz.core.database import engine
from dailyquiz.core.errors import QuizError
from dailyquiz.models.orm import Base
from dailyquiz.api.quiz import router as quiz_router
from dailyquiz.api.admin import router as admin_router
from dailyquiz.api.author import router as author_router
from dailyquiz.api.auth import router as auth_router

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Daily Quiz API (day boundary in {QUIZ_TIMEZONE})")
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized")
    yield
    engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(title="Daily Quiz API", version="1.0.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
app.include_router(auth_router, prefix="/v1/auth", tags=["auth"])
app.include_router(quiz_router, prefix="/v1/quiz", tags=["quiz"])
app.include_router(author_router, prefix="/v1/author", tags=["authoring"])
app.include_router(admin_router, prefix="/v1/admin", tags=["admin"])


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_type} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.message,
                "type": exc.error_type,
                "status_code": exc.status_code
            }
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "type": "http_error",
                "status_code": exc.status_code
            }
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation error",
                "type": "validation_error",
                "details": jsonable_encoder(exc.errors())
            }
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "An internal error occurred",
                "type": "internal_error",
                "status_code": 500
            }
        }
    )


@app.get("/health")
def health(): return {"status": "ok"}
