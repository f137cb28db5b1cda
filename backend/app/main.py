# Roster admin backend entrypoint: FastAPI app, routers and error handlers.

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api import attendance
from backend.app.api import classes
from backend.app.api import enrollments
from backend.app.api import families
from backend.app.api import login
from backend.app.api import people
from backend.app.api import register
from backend.app.core.app_logger import get_logger, setup_logging
from backend.app.core.errors import (
    CROSS_PROGRAM_MERGE,
    DUPLICATE_CONTACT,
    DUPLICATE_RECORD,
    FOREIGN_KEY_VIOLATION,
    RECORD_NOT_FOUND,
    DomainError,
    ValidationError,
    field_errors,
)
from backend.app.core.settings import get_settings
from backend.app.db.base import Base
from backend.app.db.session import engine

settings = get_settings()
setup_logging()
logger = get_logger("api")

app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

DOMAIN_ERROR_STATUS = {
    RECORD_NOT_FOUND: 404,
    DUPLICATE_CONTACT: 409,
    DUPLICATE_RECORD: 409,
    CROSS_PROGRAM_MERGE: 400,
    FOREIGN_KEY_VIOLATION: 400,
}


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.info("Domain error", extra={"context": {"kind": exc.kind, "path": request.url.path}})
    return JSONResponse(
        status_code=DOMAIN_ERROR_STATUS.get(exc.kind, 400),
        content={"error": {"kind": exc.kind, "message": exc.message}},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"errors": exc.errors})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"errors": field_errors(exc)})


app.include_router(register.router)
app.include_router(login.router)
app.include_router(people.router)
app.include_router(families.router)
app.include_router(classes.router)
app.include_router(attendance.router)
app.include_router(enrollments.router)


@app.get("/")
def read_root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)
