from fastapi import FastAPI, Depends, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from logging.handlers import RotatingFileHandler
import os

import models
import schemas
import crud
import auth
import sessions
import config

from database import engine, get_db
from models import User

# ---------------------------------------------------------
# LOGGING CONFIGURATION
# ---------------------------------------------------------

os.makedirs(config.LOG_DIR, exist_ok=True)

logging.basicConfig(
    level=logging.DEBUG if config.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        # File handler with rotation (max 10MB per file, keep 5 backup files)
        RotatingFileHandler(
            config.LOG_FILE,
            maxBytes=config.LOG_MAX_BYTES,
            backupCount=config.LOG_BACKUP_COUNT
        ),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# CREATE DATABASE TABLES
# ---------------------------------------------------------
models.Base.metadata.create_all(bind=engine)
logger.info("Database tables created successfully")

# ---------------------------------------------------------
# FASTAPI APP INIT
# ---------------------------------------------------------
app = FastAPI(
    title=config.APP_NAME,
    description="Internship program management: learning paths, submissions and intern progress",
    version=config.APP_VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------
# ERROR PAYLOADS
# ---------------------------------------------------------

ERROR_CODES = {
    400: "invalid-input",
    401: "unauthorized",
    403: "access-denied",
    404: "not-found",
    422: "invalid-input",
}


def error_code(status_code: int) -> str:
    if status_code >= 500:
        return "internal"
    return ERROR_CODES.get(status_code, "invalid-input")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error_code(exc.status_code), "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "invalid-input", "detail": jsonable_errors(exc)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal", "detail": "Internal server error"},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def internal_error(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


logger.info("FastAPI application initialized")

# ---------------------------------------------------------
# AUTH ROUTES
# ---------------------------------------------------------

@app.post("/login")
def login(user_login: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    User login with password verification.
    Returns session token and user info on success.
    """
    try:
        logger.info(f"Login attempt for user: {user_login.username}")
        result = auth.login_user(user_login, db)
        logger.info(f"Login successful for user: {user_login.username}")
        return result
    except HTTPException as e:
        logger.warning(f"Login failed for user: {user_login.username} - {e.detail}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error during login: {str(e)}")
        raise internal_error("Internal server error during login")


@app.post("/logout")
def logout(request: Request):
    """
    Invalidate the session token sent in the X-Session-Token header.
    """
    session_token = request.headers.get(config.SESSION_HEADER)
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No session token provided")
    return auth.logout_user(session_token)


# ---------------------------------------------------------
# USER ROUTES
# ---------------------------------------------------------

@app.post("/users", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    """
    Register a new intern account.
    """
    try:
        return crud.create_user(db, user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating user: {str(e)}")
        raise internal_error("Failed to create user")


@app.get("/users/me", response_model=schemas.UserResponse)
def get_current_user_info(current_user: User = Depends(auth.get_current_user)):
    return current_user


@app.get("/admin/users", response_model=List[schemas.UserListResponse])
def list_users(
    role: Optional[str] = None,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """List users, optionally filtered by role. Admins only."""
    return crud.get_all_users(db, role)


@app.put("/admin/users/{user_id}/role", response_model=schemas.UserResponse)
def update_user_role(
    user_id: int,
    payload: schemas.UserRoleUpdate,
    current_user: User = Depends(auth.require_super_admin),
    db: Session = Depends(get_db)
):
    """
    Change a user's global role. SUPER_ADMIN only.
    Live sessions of that user pick up the new role immediately.
    """
    try:
        user = crud.update_user_role(db, user_id, payload.role)
        sessions.update_session_role(user.id, user.role)
        logger.info(f"User {user_id} role updated to {user.role} by {current_user.username}")
        return user
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating user role: {str(e)}")
        raise internal_error("Failed to update user role")


# ---------------------------------------------------------
# PUBLIC INTERNSHIP ROUTES
# ---------------------------------------------------------

@app.get("/internships", response_model=List[schemas.InternshipResponse])
def list_internships(db: Session = Depends(get_db)):
    return crud.get_internships(db)


@app.get("/internships/{internship_id}", response_model=schemas.InternshipResponse)
def get_internship(internship_id: int, db: Session = Depends(get_db)):
    internship = crud.get_internship_or_404(db, internship_id)
    return crud.internship_to_dict(db, internship)


@app.post(
    "/internships/{internship_id}/apply",
    response_model=schemas.ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
def apply_to_internship(
    internship_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """Apply to an internship. One application per internship."""
    try:
        return crud.apply_to_internship(db, internship_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error applying to internship {internship_id}: {str(e)}")
        raise internal_error("Failed to submit application")


@app.get("/applications", response_model=List[schemas.ApplicationResponse])
def my_applications(
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """Applications of the current user, newest first."""
    return crud.get_applications_for_user(db, current_user.id)


# ---------------------------------------------------------
# INTERN PROGRESS & SUBMISSION ROUTES
# ---------------------------------------------------------

@app.get("/progress/{internship_id}", response_model=schemas.InternProgressResponse)
def my_progress(
    internship_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Task-by-task progress of the current intern, including which tasks are unlocked.
    Requires an ACCEPTED application to the internship.
    """
    try:
        return crud.get_intern_progress(db, internship_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching progress for internship {internship_id}: {str(e)}")
        raise internal_error("Failed to fetch progress")


@app.post("/submissions", response_model=schemas.SubmissionResponse, status_code=status.HTTP_201_CREATED)
def submit_task(
    payload: schemas.SubmissionCreate,
    response: Response,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Submit work for a task.
    A submission marked REQUIRES_CHANGES is updated in place (200); any other
    existing submission blocks a new one (400).
    """
    try:
        submission, created = crud.submit_task(db, payload, current_user)
        if not created:
            response.status_code = status.HTTP_200_OK
        return submission
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting task {payload.task_id}: {str(e)}")
        raise internal_error("Failed to create submission")


@app.get("/submissions", response_model=List[schemas.SubmissionResponse])
def my_submissions(
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    return crud.get_submissions_for_user(db, current_user.id)


# ---------------------------------------------------------
# ADMIN: INTERNSHIPS
# ---------------------------------------------------------

@app.post("/admin/internships", response_model=schemas.InternshipResponse, status_code=status.HTTP_201_CREATED)
def create_internship(
    payload: schemas.InternshipCreate,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    try:
        internship = crud.create_internship(db, payload)
        logger.info(f"Internship {internship['id']} created by admin {current_user.username}")
        return internship
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating internship: {str(e)}")
        raise internal_error("Failed to create internship")


@app.put("/admin/internships/{internship_id}", response_model=schemas.InternshipResponse)
def update_internship(
    internship_id: int,
    payload: schemas.InternshipUpdate,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    try:
        return crud.update_internship(db, internship_id, payload)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating internship {internship_id}: {str(e)}")
        raise internal_error("Failed to update internship")


@app.delete("/admin/internships/{internship_id}")
def delete_internship(
    internship_id: int,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """
    Delete an internship.
    Internships with applications can only be deleted by a SUPER_ADMIN.
    """
    try:
        return crud.delete_internship(db, internship_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting internship {internship_id}: {str(e)}")
        raise internal_error("Failed to delete internship")


@app.get("/admin/internships/{internship_id}/progress", response_model=schemas.InternshipProgressResponse)
def internship_progress(
    internship_id: int,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """
    Per-intern task status, deadlines and risk labels for an internship.
    Interns are ordered behind, at-risk, on-track.
    """
    try:
        return crud.get_internship_progress(db, internship_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching internship progress for {internship_id}: {str(e)}")
        raise internal_error("Failed to fetch internship progress")


# ---------------------------------------------------------
# ADMIN: LEARNING PATHS & TASKS
# ---------------------------------------------------------

@app.get("/admin/learning-paths", response_model=List[schemas.LearningPathResponse])
def list_learning_paths(
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    return crud.get_learning_paths(db)


@app.post("/admin/learning-paths", response_model=schemas.LearningPathResponse, status_code=status.HTTP_201_CREATED)
def create_learning_path(
    payload: schemas.LearningPathCreate,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    try:
        return crud.create_learning_path(db, payload)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating learning path: {str(e)}")
        raise internal_error("Failed to create learning path")


@app.get("/admin/learning-paths/{learning_path_id}", response_model=schemas.LearningPathResponse)
def get_learning_path(
    learning_path_id: int,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    return crud.get_learning_path_or_404(db, learning_path_id)


@app.put("/admin/learning-paths/{learning_path_id}", response_model=schemas.LearningPathResponse)
def update_learning_path(
    learning_path_id: int,
    payload: schemas.LearningPathUpdate,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    return crud.update_learning_path(db, learning_path_id, payload)


@app.delete("/admin/learning-paths/{learning_path_id}")
def delete_learning_path(
    learning_path_id: int,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """Delete a learning path that no internship uses."""
    try:
        return crud.delete_learning_path(db, learning_path_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting learning path {learning_path_id}: {str(e)}")
        raise internal_error("Failed to delete learning path")


@app.get("/admin/learning-paths/{learning_path_id}/tasks", response_model=List[schemas.TaskResponse])
def list_tasks(
    learning_path_id: int,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    return crud.get_tasks_for_path(db, learning_path_id)


@app.post(
    "/admin/learning-paths/{learning_path_id}/tasks",
    response_model=schemas.TaskResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_task(
    learning_path_id: int,
    payload: schemas.TaskCreate,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    try:
        return crud.create_task(db, learning_path_id, payload)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating task in learning path {learning_path_id}: {str(e)}")
        raise internal_error("Failed to create task")


@app.put("/admin/learning-paths/{learning_path_id}/tasks/{task_id}", response_model=schemas.TaskResponse)
def update_task(
    learning_path_id: int,
    task_id: int,
    payload: schemas.TaskUpdate,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    try:
        return crud.update_task(db, learning_path_id, task_id, payload)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating task {task_id}: {str(e)}")
        raise internal_error("Failed to update task")


@app.delete("/admin/learning-paths/{learning_path_id}/tasks/{task_id}")
def delete_task(
    learning_path_id: int,
    task_id: int,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """Delete a task. Tasks with submissions cannot be deleted."""
    try:
        return crud.delete_task(db, learning_path_id, task_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting task {task_id}: {str(e)}")
        raise internal_error("Failed to delete task")


# ---------------------------------------------------------
# ADMIN: APPLICATIONS
# ---------------------------------------------------------

@app.get("/admin/applications", response_model=List[schemas.ApplicationResponse])
def list_applications(
    status_filter: Optional[str] = None,
    internship_id: Optional[int] = None,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    return crud.get_applications(db, status_filter, internship_id)


@app.put("/admin/applications/{application_id}", response_model=schemas.ApplicationResponse)
def review_application(
    application_id: int,
    payload: schemas.ApplicationReview,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """Accept or reject an application, with optional feedback."""
    try:
        return crud.review_application(db, application_id, payload, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reviewing application {application_id}: {str(e)}")
        raise internal_error("Failed to update application")


# ---------------------------------------------------------
# ADMIN: SUBMISSIONS & DEADLINES
# ---------------------------------------------------------

@app.get("/admin/submissions", response_model=List[schemas.SubmissionResponse])
def list_submissions(
    status_filter: Optional[str] = None,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    return crud.get_submissions(db, status_filter)


@app.put("/admin/submissions/{submission_id}", response_model=schemas.SubmissionResponse)
def review_submission(
    submission_id: int,
    payload: schemas.SubmissionReview,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    try:
        return crud.review_submission(db, submission_id, payload, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reviewing submission {submission_id}: {str(e)}")
        raise internal_error("Failed to review submission")


@app.put("/admin/deadlines/{intern_id}/{task_id}", response_model=schemas.DeadlineAdjustmentResponse)
def adjust_deadline(
    intern_id: int,
    task_id: int,
    payload: schemas.DeadlineAdjustmentUpdate,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """
    Override a task's deadline offset for one intern.
    """
    try:
        return crud.adjust_deadline(db, intern_id, task_id, payload, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adjusting deadline for intern {intern_id}, task {task_id}: {str(e)}")
        raise internal_error("Failed to adjust deadline")


@app.delete("/admin/deadlines/{intern_id}/{task_id}")
def remove_deadline_adjustment(
    intern_id: int,
    task_id: int,
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    return crud.delete_deadline_adjustment(db, intern_id, task_id, current_user)


@app.get("/admin/stats")
def admin_stats(
    current_user: User = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    return {"stats": crud.get_admin_stats(db)}


# ---------------------------------------------------------
# HEALTH & SESSION MAINTENANCE
# ---------------------------------------------------------

@app.get("/")
def root():
    """
    Health check endpoint to verify the app is running.
    """
    return {
        "message": f"{config.APP_NAME} is running",
        "status": "operational",
        "version": config.APP_VERSION,
        "active_sessions": sessions.get_active_sessions_count()
    }


@app.post("/admin/sessions/cleanup")
def cleanup_sessions(current_user: User = Depends(auth.require_admin)):
    """
    Remove expired sessions from the in-memory store.
    """
    count = sessions.cleanup_expired_sessions()
    logger.info(f"Session cleanup completed by {current_user.username}: {count} sessions removed")
    return {
        "message": "Session cleanup completed",
        "expired_sessions_removed": count,
        "active_sessions": sessions.get_active_sessions_count()
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=config.DEFAULT_HOST, port=config.DEFAULT_PORT, reload=config.DEBUG)
