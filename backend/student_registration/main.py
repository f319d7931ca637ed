"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the student registration
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses.

Endpoints implemented:
- POST /api/auth/login, /api/auth/register, /api/auth/change-password
- GET /api/auth/profile, /api/auth/verify
- POST /api/students/enroll
- GET/POST /api/students, GET/PUT/DELETE /api/students/{id}, GET /api/students/{id}/edit-info
- GET /api/students/by-professor/{id}, /api/students/{id}/classmates/{course_id},
  /api/students/{id}/all-classmates
- GET/POST /api/courses, GET/DELETE /api/courses/{id},
  GET /api/courses/available/{student_id}, /api/courses/by-professor/{id}
- GET/POST /api/professors, GET/DELETE /api/professors/{id}
- GET /health, GET /info
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, List
from fastapi import FastAPI, Depends, HTTPException, Path, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
import json
import logging
import os
import time
import uuid
from .database import get_session
from .bootstrap import init_db
from . import services, schemas, models
from .auth import get_current_user, get_token_payload, require_admin
from .errors import EnrollmentFailure, RegistrationError
from .utils.rate_limit import LoginRateLimiter
from .config import settings

API_VERSION = "1.0.0"

logger = logging.getLogger("registration.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# Ids beyond the INTEGER column range answer 422 instead of reaching the database.
RowId = Annotated[int, Path(le=models.MAX_ID)]

_login_rate_limiter = LoginRateLimiter(
    max_attempts=settings.LOGIN_RATE_LIMIT_PER_MIN,
    window_seconds=settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    summary = init_db()
    logger.info("database_ready %s", json.dumps(summary, ensure_ascii=True))
    yield


app = FastAPI(title="Student Registration API", version=API_VERSION, lifespan=lifespan)

# Wide-open CORS keeps local frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(RegistrationError)
async def registration_error_handler(request: Request, exc: RegistrationError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _enforce_login_rate_limit(request: Request) -> None:
    key = request.client.host if request.client else "unknown"
    allowed, retry_after = _login_rate_limiter.allow(key)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"too many login attempts; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


# --- auth -----------------------------------------------------------------

@app.post('/api/auth/login', response_model=schemas.AuthResult)
def login(payload: schemas.LoginIn, request: Request, db: Session = Depends(get_session)):
    """Authenticate a user and return a signed JWT.

    Failed attempts answer 401 with the same body whether the username
    or the password was wrong.
    """
    _enforce_login_rate_limit(request)
    result = services.AuthService(db).login(payload.username, payload.password)
    if not result.authenticated:
        return JSONResponse(status_code=401, content=result.model_dump(mode="json"))
    return result


@app.post('/api/auth/register', response_model=schemas.RegisterResult, status_code=201)
def register(payload: schemas.RegisterIn, db: Session = Depends(get_session)):
    """Register a new account; students also get a `Student` record."""
    result = services.AuthService(db).register(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
    )
    if not result.success:
        return JSONResponse(status_code=400, content=result.model_dump(mode="json"))
    return result


@app.post('/api/auth/change-password')
def change_password(payload: schemas.ChangePasswordIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    changed = services.AuthService(db).change_password(user.id, payload.current_password, payload.new_password)
    if not changed:
        raise HTTPException(status_code=400, detail='password not changed')
    return {'message': 'password changed'}


@app.get('/api/auth/profile', response_model=schemas.UserOut)
def profile(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    out = services.AuthService(db).get_user(user.id)
    if out is None:
        raise HTTPException(status_code=404, detail='user not found')
    return out


@app.get('/api/auth/verify')
def verify_token(payload: dict = Depends(get_token_payload)):
    """Echo the identity claims of a valid bearer token."""
    return {
        'valid': True,
        'user_id': payload.get('user_id'),
        'username': payload.get('username'),
        'role': payload.get('role'),
    }


# --- students ---------------------------------------------------------------

@app.post('/api/students/enroll', response_model=schemas.EnrollmentResult)
def enroll(payload: schemas.EnrollmentIn, db: Session = Depends(get_session)):
    """Replace a student's enrollments with the requested course set.

    Rule violations answer with `{ok: false, reason, message}`: 404 for an
    unknown student, 400 otherwise.
    """
    services.validate_enrollment_request(payload.student_id, payload.course_ids)
    result = services.EnrollmentService(db).enroll(payload.student_id, payload.course_ids)
    if not result.ok:
        status = 404 if result.reason is EnrollmentFailure.NOT_FOUND else 400
        return JSONResponse(status_code=status, content=result.model_dump(mode="json"))
    return result


@app.get('/api/students', response_model=List[schemas.StudentOut])
def list_students(db: Session = Depends(get_session)):
    return services.StudentService(db).list_students()


@app.post('/api/students', response_model=schemas.StudentOut, status_code=201)
def create_student(payload: schemas.StudentIn, db: Session = Depends(get_session)):
    return services.StudentService(db).create_student(payload.first_name, payload.last_name, payload.email)


@app.get('/api/students/by-professor/{professor_id}', response_model=List[schemas.StudentOut])
def list_students_by_professor(professor_id: RowId, db: Session = Depends(get_session)):
    return services.StudentService(db).list_students_by_professor(professor_id)


@app.get('/api/students/{student_id}', response_model=schemas.StudentOut)
def get_student(student_id: RowId, db: Session = Depends(get_session)):
    return services.StudentService(db).get_student(student_id)


@app.get('/api/students/{student_id}/edit-info', response_model=schemas.StudentOut)
def get_student_edit_info(student_id: RowId, db: Session = Depends(get_session)):
    """Same projection as `GET /api/students/{id}`, kept for edit forms."""
    return services.StudentService(db).get_student(student_id)


@app.put('/api/students/{student_id}', response_model=schemas.StudentOut)
def update_student(student_id: RowId, payload: schemas.StudentUpdateIn, db: Session = Depends(get_session)):
    return services.StudentService(db).update_student(
        student_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        username=payload.username,
        new_password=payload.new_password,
    )


@app.delete('/api/students/{student_id}', status_code=204)
def delete_student(student_id: RowId, db: Session = Depends(get_session)):
    services.StudentService(db).delete_student(student_id)
    return Response(status_code=204)


@app.get('/api/students/{student_id}/classmates/{course_id}', response_model=List[schemas.ClassmateOut])
def get_classmates(student_id: RowId, course_id: RowId, db: Session = Depends(get_session)):
    return services.StudentService(db).get_classmates(student_id, course_id)


@app.get('/api/students/{student_id}/all-classmates', response_model=List[schemas.CourseClassmatesOut])
def get_all_classmates(student_id: RowId, db: Session = Depends(get_session)):
    return services.StudentService(db).get_all_classmates(student_id)


# --- courses ----------------------------------------------------------------

@app.get('/api/courses', response_model=List[schemas.CourseOut])
def list_courses(db: Session = Depends(get_session)):
    return services.CourseService(db).list_courses()


@app.post('/api/courses', response_model=schemas.CourseOut, status_code=201)
def create_course(payload: schemas.CourseIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return services.CourseService(db).create_course(payload.name, payload.description, payload.professor_id)


@app.get('/api/courses/available/{student_id}', response_model=List[schemas.CourseOut])
def list_available_courses(student_id: RowId, db: Session = Depends(get_session)):
    """Courses taught by professors the student does not already have."""
    return services.CourseService(db).list_available_courses(student_id)


@app.get('/api/courses/by-professor/{professor_id}', response_model=List[schemas.CourseOut])
def list_courses_by_professor(professor_id: RowId, db: Session = Depends(get_session)):
    return services.CourseService(db).list_courses_by_professor(professor_id)


@app.get('/api/courses/{course_id}', response_model=schemas.CourseOut)
def get_course(course_id: RowId, db: Session = Depends(get_session)):
    return services.CourseService(db).get_course(course_id)


@app.delete('/api/courses/{course_id}', status_code=204)
def delete_course(course_id: RowId, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    services.CourseService(db).delete_course(course_id)
    return Response(status_code=204)


# --- professors -------------------------------------------------------------

@app.get('/api/professors', response_model=List[schemas.ProfessorOut])
def list_professors(db: Session = Depends(get_session)):
    return services.ProfessorService(db).list_professors()


@app.post('/api/professors', response_model=schemas.ProfessorOut, status_code=201)
def create_professor(payload: schemas.ProfessorIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return services.ProfessorService(db).create_professor(
        payload.first_name, payload.last_name, payload.email, payload.department
    )


@app.get('/api/professors/{professor_id}', response_model=schemas.ProfessorOut)
def get_professor(professor_id: RowId, db: Session = Depends(get_session)):
    return services.ProfessorService(db).get_professor(professor_id)


@app.delete('/api/professors/{professor_id}', status_code=204)
def delete_professor(professor_id: RowId, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    services.ProfessorService(db).delete_professor(professor_id)
    return Response(status_code=204)


# --- misc -------------------------------------------------------------------

@app.get("/")
def home():
    return RedirectResponse(url="/docs")


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat(), "version": API_VERSION}


@app.get("/info")
def info():
    return {
        "api": app.title,
        "version": API_VERSION,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth": "/api/auth",
            "students": "/api/students",
            "courses": "/api/courses",
            "professors": "/api/professors",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
