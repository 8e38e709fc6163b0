from typing import Optional
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func
from datetime import datetime, timezone
from fastapi import HTTPException, status

from models import (
    User,
    LearningPath,
    Task,
    Internship,
    Application,
    Submission,
    DeadlineAdjustment,
)
from schemas import (
    UserCreate,
    LearningPathCreate,
    LearningPathUpdate,
    TaskCreate,
    TaskUpdate,
    InternshipCreate,
    InternshipUpdate,
    ApplicationReview,
    SubmissionCreate,
    SubmissionReview,
    DeadlineAdjustmentUpdate,
)
import auth
import config
import progress
import logging

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


# ------------------------------------------------------------------
# USER CRUD OPERATIONS
# ------------------------------------------------------------------

def create_user(db: Session, user: UserCreate, role: str = config.ROLE_INTERN):
    """
    Create a new user with hashed password.
    Self-registration always yields an INTERN; roles are changed by a SUPER_ADMIN.
    """
    if (user.username or "").strip().lower() == (user.password or "").strip().lower():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username must not be the same as password"
        )

    if get_user_by_username(db, user.username.strip()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists"
        )

    db_user = User(
        username=user.username.strip(),
        password=auth.hash_password(user.password),
        name=user.name,
        email=user.email,
        role=role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    logger.info(f"User created: {db_user.username} (ID: {db_user.id}, role {role})")
    return db_user


def get_user_by_username(db: Session, username: str):
    return db.query(User).filter(User.username == username).first()


def get_user_by_id(db: Session, user_id: int):
    return db.query(User).filter(User.id == user_id).first()


def get_all_users(db: Session, role: Optional[str] = None):
    """
    List users for admin tables, optionally filtered by role.
    """
    query = db.query(User)
    if role:
        query = query.filter(User.role == role.upper())
    return query.order_by(User.username).all()


def update_user_role(db: Session, user_id: int, new_role: str):
    """
    Update a user's global role (INTERN / ADMIN / SUPER_ADMIN).
    """
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    role = (new_role or "").strip().upper()
    if role not in config.ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role. Must be one of: {', '.join(config.ROLES)}"
        )

    user.role = role
    db.commit()
    db.refresh(user)
    return user


# ------------------------------------------------------------------
# LEARNING PATH OPERATIONS
# ------------------------------------------------------------------

def get_learning_path(db: Session, learning_path_id: int):
    return (
        db.query(LearningPath)
        .options(selectinload(LearningPath.tasks))
        .filter(LearningPath.id == learning_path_id)
        .first()
    )


def get_learning_path_or_404(db: Session, learning_path_id: int):
    learning_path = get_learning_path(db, learning_path_id)
    if not learning_path:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Learning path with ID {learning_path_id} not found"
        )
    return learning_path


def get_learning_paths(db: Session):
    return (
        db.query(LearningPath)
        .options(selectinload(LearningPath.tasks))
        .order_by(LearningPath.created_at.desc(), LearningPath.id.desc())
        .all()
    )


def create_learning_path(db: Session, payload: LearningPathCreate):
    """
    Create a learning path, optionally with its initial tasks.
    """
    title = (payload.title or "").strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title is required"
        )

    learning_path = LearningPath(title=title, description=payload.description)
    for task in payload.tasks or []:
        learning_path.tasks.append(_build_task(task))

    db.add(learning_path)
    db.commit()
    db.refresh(learning_path)

    logger.info(f"Learning path created: {learning_path.title} (ID: {learning_path.id}) with {len(learning_path.tasks)} tasks")
    return learning_path


def update_learning_path(db: Session, learning_path_id: int, payload: LearningPathUpdate):
    learning_path = get_learning_path_or_404(db, learning_path_id)

    if payload.title is not None:
        if not payload.title.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Title must not be empty"
            )
        learning_path.title = payload.title.strip()
    if payload.description is not None:
        learning_path.description = payload.description

    db.commit()
    db.refresh(learning_path)
    return learning_path


def delete_learning_path(db: Session, learning_path_id: int):
    """
    Delete a learning path and its tasks.
    Refused while an internship references it or any of its tasks has submissions.
    """
    learning_path = get_learning_path_or_404(db, learning_path_id)

    linked = db.query(func.count(Internship.id)).filter(Internship.learning_path_id == learning_path_id).scalar() or 0
    if linked > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete learning path that is linked to internships"
        )

    task_ids = [t.id for t in learning_path.tasks]
    if task_ids:
        submitted = db.query(func.count(Submission.id)).filter(Submission.task_id.in_(task_ids)).scalar() or 0
        if submitted > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot delete learning path whose tasks have submissions"
            )

    db.delete(learning_path)
    db.commit()
    logger.info("Learning path %s deleted", learning_path_id)
    return {"message": "Learning path deleted"}


# ------------------------------------------------------------------
# TASK OPERATIONS
# ------------------------------------------------------------------

def _build_task(task: TaskCreate) -> Task:
    title = (task.title or "").strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Task title is required"
        )
    return Task(
        title=title,
        description=task.description,
        content=task.content,
        order=task.order,
        deadline_offset=task.deadline_offset,
    )


def get_task_by_id(db: Session, task_id: int):
    return db.query(Task).filter(Task.id == task_id).first()


def get_task_or_404(db: Session, task_id: int, learning_path_id: Optional[int] = None):
    task = get_task_by_id(db, task_id)
    if not task or (learning_path_id is not None and task.learning_path_id != learning_path_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task with ID {task_id} not found"
        )
    return task


def get_tasks_for_path(db: Session, learning_path_id: int):
    get_learning_path_or_404(db, learning_path_id)
    return (
        db.query(Task)
        .filter(Task.learning_path_id == learning_path_id)
        .order_by(Task.order.asc(), Task.id.asc())
        .all()
    )


def create_task(db: Session, learning_path_id: int, payload: TaskCreate):
    learning_path = get_learning_path_or_404(db, learning_path_id)

    task = _build_task(payload)
    task.learning_path_id = learning_path.id
    db.add(task)
    db.commit()
    db.refresh(task)

    logger.info(f"Task created: {task.title} (ID: {task.id}, order {task.order}) in learning path {learning_path_id}")
    return task


def update_task(db: Session, learning_path_id: int, task_id: int, payload: TaskUpdate):
    task = get_task_or_404(db, task_id, learning_path_id)

    if payload.title is not None:
        if not payload.title.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Task title must not be empty"
            )
        task.title = payload.title.strip()
    if payload.description is not None:
        task.description = payload.description
    if payload.content is not None:
        task.content = payload.content
    if payload.order is not None:
        task.order = payload.order
    if payload.deadline_offset is not None:
        task.deadline_offset = payload.deadline_offset

    db.commit()
    db.refresh(task)
    logger.info(f"Task {task_id} updated")
    return task


def delete_task(db: Session, learning_path_id: int, task_id: int):
    """
    Delete a task and its deadline adjustments.
    Tasks that already have submissions cannot be deleted.
    """
    task = get_task_or_404(db, task_id, learning_path_id)

    submission_count = db.query(func.count(Submission.id)).filter(Submission.task_id == task_id).scalar() or 0
    if submission_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete task that has submissions"
        )

    db.delete(task)
    db.commit()
    logger.info("Task %s deleted from learning path %s", task_id, learning_path_id)
    return {"message": "Task deleted"}


# ------------------------------------------------------------------
# INTERNSHIP OPERATIONS
# ------------------------------------------------------------------

def get_internship(db: Session, internship_id: int):
    return db.query(Internship).filter(Internship.id == internship_id).first()


def get_internship_or_404(db: Session, internship_id: int):
    internship = get_internship(db, internship_id)
    if not internship:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Internship not found"
        )
    return internship


def internship_to_dict(db: Session, internship: Internship) -> dict:
    accepted = (
        db.query(func.count(Application.id))
        .filter(
            Application.internship_id == internship.id,
            Application.status == config.APPLICATION_ACCEPTED,
        )
        .scalar()
        or 0
    )
    return {
        "id": internship.id,
        "title": internship.title,
        "description": internship.description,
        "capacity": internship.capacity,
        "start_date": internship.start_date,
        "end_date": internship.end_date,
        "learning_path_id": internship.learning_path_id,
        "learning_path_title": internship.learning_path.title if internship.learning_path else None,
        "accepted_count": accepted,
        "created_at": internship.created_at,
    }


def get_internships(db: Session):
    internships = (
        db.query(Internship)
        .options(joinedload(Internship.learning_path))
        .order_by(Internship.created_at.desc(), Internship.id.desc())
        .all()
    )
    return [internship_to_dict(db, i) for i in internships]


def _validate_schedule(start_date, end_date):
    # Stored values come back naive from SQLite; compare everything as UTC
    start_date, end_date = progress.as_utc(start_date), progress.as_utc(end_date)
    if start_date and end_date and end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must not be before start date"
        )


def create_internship(db: Session, payload: InternshipCreate):
    title = (payload.title or "").strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title is required"
        )
    _validate_schedule(payload.start_date, payload.end_date)
    if payload.learning_path_id is not None:
        get_learning_path_or_404(db, payload.learning_path_id)

    internship = Internship(
        title=title,
        description=payload.description,
        capacity=payload.capacity,
        start_date=payload.start_date,
        end_date=payload.end_date,
        learning_path_id=payload.learning_path_id,
    )
    db.add(internship)
    db.commit()
    db.refresh(internship)

    logger.info(f"Internship created: {internship.title} (ID: {internship.id})")
    return internship_to_dict(db, internship)


def update_internship(db: Session, internship_id: int, payload: InternshipUpdate):
    internship = get_internship_or_404(db, internship_id)

    changes = payload.model_dump(exclude_unset=True)
    if "title" in changes and not (changes["title"] or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title must not be empty"
        )
    if changes.get("learning_path_id") is not None:
        get_learning_path_or_404(db, changes["learning_path_id"])

    _validate_schedule(
        changes.get("start_date", internship.start_date),
        changes.get("end_date", internship.end_date),
    )

    for field, value in changes.items():
        setattr(internship, field, value.strip() if field == "title" else value)

    db.commit()
    db.refresh(internship)
    logger.info(f"Internship {internship_id} updated ({', '.join(changes) or 'no changes'})")
    return internship_to_dict(db, internship)


def delete_internship(db: Session, internship_id: int, current_user: User):
    """
    Delete an internship.
    If it already has applications only a SUPER_ADMIN may delete it, and the
    applications are removed with it.
    """
    internship = get_internship_or_404(db, internship_id)

    application_count = len(internship.applications)
    if application_count > 0 and not auth.has_role(current_user, config.ROLE_SUPER_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This internship has {application_count} application(s). Only SUPER_ADMIN can delete internships with applications."
        )

    db.delete(internship)
    db.commit()
    logger.info(f"Internship {internship_id} deleted by {current_user.username} ({application_count} applications removed)")
    return {"message": "Internship deleted"}


# ------------------------------------------------------------------
# APPLICATION OPERATIONS
# ------------------------------------------------------------------

def application_to_dict(application: Application) -> dict:
    return {
        "id": application.id,
        "user_id": application.user_id,
        "internship_id": application.internship_id,
        "status": application.status,
        "feedback": application.feedback,
        "applied_at": application.applied_at,
        "reviewed_at": application.reviewed_at,
        "username": application.user.username if application.user else None,
        "internship_title": application.internship.title if application.internship else None,
    }


def apply_to_internship(db: Session, internship_id: int, current_user: User):
    """
    Create a PENDING application. One application per (user, internship).
    """
    get_internship_or_404(db, internship_id)

    application = Application(
        user_id=current_user.id,
        internship_id=internship_id,
        status=config.APPLICATION_PENDING,
    )
    db.add(application)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You have already applied to this internship"
        )
    db.refresh(application)

    logger.info(f"User {current_user.id} applied to internship {internship_id} (application {application.id})")
    return application_to_dict(application)


def get_applications_for_user(db: Session, user_id: int):
    applications = (
        db.query(Application)
        .options(joinedload(Application.internship), joinedload(Application.user))
        .filter(Application.user_id == user_id)
        .order_by(Application.applied_at.desc(), Application.id.desc())
        .all()
    )
    return [application_to_dict(a) for a in applications]


def get_applications(db: Session, status_filter: Optional[str] = None, internship_id: Optional[int] = None):
    query = db.query(Application).options(
        joinedload(Application.internship), joinedload(Application.user)
    )
    if status_filter:
        query = query.filter(Application.status == status_filter.upper())
    if internship_id is not None:
        query = query.filter(Application.internship_id == internship_id)
    applications = query.order_by(Application.applied_at.desc(), Application.id.desc()).all()
    return [application_to_dict(a) for a in applications]


def review_application(db: Session, application_id: int, payload: ApplicationReview, current_user: User):
    """
    Accept or reject an application.
    Accepts either an action ("accept" / "reject") or an explicit status.
    """
    application = db.query(Application).filter(Application.id == application_id).first()
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")

    if payload.action is not None:
        actions = {"accept": config.APPLICATION_ACCEPTED, "reject": config.APPLICATION_REJECTED}
        new_status = actions.get(payload.action.strip().lower())
        if new_status is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid action")
    else:
        new_status = (payload.status or "").strip().upper()
        if new_status not in config.APPLICATION_STATUSES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")

    application.status = new_status
    if payload.feedback is not None:
        application.feedback = payload.feedback or None
    application.reviewed_at = _now()
    db.commit()
    db.refresh(application)

    logger.info(f"Application {application_id} set to {new_status} by {current_user.username}")
    return application_to_dict(application)


def has_accepted_application_for_task(db: Session, user_id: int, task: Task) -> bool:
    """
    True when the user holds an ACCEPTED application to any internship whose
    learning path contains the task.
    """
    match = (
        db.query(Application.id)
        .join(Internship, Internship.id == Application.internship_id)
        .filter(
            Application.user_id == user_id,
            Application.status == config.APPLICATION_ACCEPTED,
            Internship.learning_path_id == task.learning_path_id,
        )
        .first()
    )
    return match is not None


# ------------------------------------------------------------------
# SUBMISSION OPERATIONS (submission gate)
# ------------------------------------------------------------------

def submission_to_dict(submission: Submission) -> dict:
    return {
        "id": submission.id,
        "user_id": submission.user_id,
        "task_id": submission.task_id,
        "github_url": submission.github_url,
        "status": submission.status,
        "feedback": submission.feedback,
        "admin_comment": submission.admin_comment,
        "submitted_at": submission.submitted_at,
        "reviewed_at": submission.reviewed_at,
        "task_title": submission.task.title if submission.task else None,
        "task_order": submission.task.order if submission.task else None,
    }


def submit_task(db: Session, payload: SubmissionCreate, current_user: User):
    """
    Create or resubmit the user's submission for a task.

    Allowed only for holders of an ACCEPTED application to an internship using
    the task's learning path. At most one submission exists per (user, task):
    a REQUIRES_CHANGES submission is reset to PENDING by a single conditional
    UPDATE; otherwise a new row is inserted and the unique constraint rejects
    a second submission.

    Returns (submission dict, created flag).
    """
    task = get_task_by_id(db, payload.task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    if not has_accepted_application_for_task(db, current_user.id, task):
        logger.warning(f"Submission denied: user {current_user.id} is not enrolled for task {task.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    now = _now()
    resubmitted = (
        db.query(Submission)
        .filter(
            Submission.user_id == current_user.id,
            Submission.task_id == task.id,
            Submission.status == config.SUBMISSION_REQUIRES_CHANGES,
        )
        .update(
            {
                Submission.status: config.SUBMISSION_PENDING,
                Submission.github_url: payload.github_url,
                Submission.submitted_at: now,
                Submission.feedback: None,
                Submission.admin_comment: None,
                Submission.reviewed_at: None,
            },
            synchronize_session=False,
        )
    )
    if resubmitted:
        db.commit()
        submission = (
            db.query(Submission)
            .filter(Submission.user_id == current_user.id, Submission.task_id == task.id)
            .first()
        )
        logger.info(f"Submission {submission.id} resubmitted for task {task.id} by user {current_user.id}")
        return submission_to_dict(submission), False

    submission = Submission(
        user_id=current_user.id,
        task_id=task.id,
        github_url=payload.github_url,
        status=config.SUBMISSION_PENDING,
        submitted_at=now,
    )
    db.add(submission)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Task already submitted"
        )
    db.refresh(submission)

    logger.info(f"Submission {submission.id} created for task {task.id} by user {current_user.id}")
    return submission_to_dict(submission), True


def get_submissions_for_user(db: Session, user_id: int):
    submissions = (
        db.query(Submission)
        .options(joinedload(Submission.task))
        .filter(Submission.user_id == user_id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .all()
    )
    return [submission_to_dict(s) for s in submissions]


def get_submissions(db: Session, status_filter: Optional[str] = None):
    query = db.query(Submission).options(joinedload(Submission.task))
    if status_filter:
        query = query.filter(Submission.status == status_filter.upper())
    submissions = query.order_by(Submission.submitted_at.desc(), Submission.id.desc()).all()
    return [submission_to_dict(s) for s in submissions]


def review_submission(db: Session, submission_id: int, payload: SubmissionReview, current_user: User):
    """
    Set a submission's review status and feedback.
    """
    new_status = (payload.status or "").strip().upper()
    if new_status not in config.SUBMISSION_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status. Must be one of: {', '.join(config.SUBMISSION_STATUSES)}"
        )

    submission = db.query(Submission).filter(Submission.id == submission_id).first()
    if not submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")

    submission.status = new_status
    submission.feedback = payload.feedback or None
    submission.admin_comment = payload.feedback or None
    submission.reviewed_at = _now()
    db.commit()
    db.refresh(submission)

    logger.info(f"Submission {submission_id} reviewed as {new_status} by {current_user.username}")
    return submission_to_dict(submission)


# ------------------------------------------------------------------
# DEADLINE ADJUSTMENT OPERATIONS
# ------------------------------------------------------------------

def _parse_deadline_offset(value) -> int:
    # bool is an int subclass; floats and numeric strings are rejected too
    if isinstance(value, bool) or not isinstance(value, int):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid deadline offset"
        )
    return value


def adjust_deadline(
    db: Session,
    intern_id: int,
    task_id: int,
    payload: DeadlineAdjustmentUpdate,
    current_user: User,
):
    """
    Create or update the deadline override for one intern on one task.
    The intern must be enrolled in an internship that uses the task's learning path.
    """
    offset = _parse_deadline_offset(payload.deadline_offset)

    task = get_task_by_id(db, task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    if not has_accepted_application_for_task(db, intern_id, task):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Intern not enrolled in this learning path"
        )

    adjustment = (
        db.query(DeadlineAdjustment)
        .filter(DeadlineAdjustment.user_id == intern_id, DeadlineAdjustment.task_id == task_id)
        .first()
    )
    if adjustment:
        old_offset = adjustment.new_deadline_offset
        adjustment.new_deadline_offset = offset
        adjustment.reason = payload.reason
        adjustment.adjusted_at = _now()
    else:
        old_offset = task.deadline_offset
        adjustment = DeadlineAdjustment(
            user_id=intern_id,
            task_id=task_id,
            new_deadline_offset=offset,
            reason=payload.reason,
        )
        db.add(adjustment)

    db.commit()
    db.refresh(adjustment)

    logger.info(
        "Deadline for task %s adjusted for intern %s by %s (offset %s -> %s)",
        task_id,
        intern_id,
        current_user.username,
        old_offset,
        offset,
    )
    return adjustment


def delete_deadline_adjustment(db: Session, intern_id: int, task_id: int, current_user: User):
    adjustment = (
        db.query(DeadlineAdjustment)
        .filter(DeadlineAdjustment.user_id == intern_id, DeadlineAdjustment.task_id == task_id)
        .first()
    )
    if not adjustment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deadline adjustment not found")

    db.delete(adjustment)
    db.commit()
    logger.info("Deadline adjustment for task %s and intern %s removed by %s", task_id, intern_id, current_user.username)
    return {"message": "Deadline adjustment removed"}


# ------------------------------------------------------------------
# PROGRESS OPERATIONS
# ------------------------------------------------------------------

def load_progress_snapshot(db: Session, internship_id: int):
    """
    Read everything the progress evaluator needs for one internship:
    (internship with tasks, accepted applications with users, submissions, adjustments).
    """
    internship = (
        db.query(Internship)
        .options(joinedload(Internship.learning_path).selectinload(LearningPath.tasks))
        .filter(Internship.id == internship_id)
        .first()
    )
    if not internship:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Internship not found")

    applications = (
        db.query(Application)
        .options(joinedload(Application.user))
        .filter(
            Application.internship_id == internship_id,
            Application.status == config.APPLICATION_ACCEPTED,
        )
        .order_by(Application.id.asc())
        .all()
    )

    task_ids = [t.id for t in internship.learning_path.tasks] if internship.learning_path else []
    user_ids = [a.user_id for a in applications]

    submissions = []
    adjustments = []
    if task_ids and user_ids:
        submissions = (
            db.query(Submission)
            .filter(Submission.task_id.in_(task_ids), Submission.user_id.in_(user_ids))
            .all()
        )
        adjustments = (
            db.query(DeadlineAdjustment)
            .filter(DeadlineAdjustment.task_id.in_(task_ids), DeadlineAdjustment.user_id.in_(user_ids))
            .all()
        )

    return internship, applications, submissions, adjustments


def get_internship_progress(db: Session, internship_id: int, now: Optional[datetime] = None):
    internship, applications, submissions, adjustments = load_progress_snapshot(db, internship_id)
    policy = progress.RiskPolicy(
        progress_threshold=config.AT_RISK_PROGRESS_THRESHOLD,
        elapsed_margin=config.AT_RISK_ELAPSED_MARGIN,
    )
    return progress.evaluate_internship(internship, applications, submissions, adjustments, now=now, policy=policy)


def get_intern_progress(db: Session, internship_id: int, current_user: User):
    """
    Progress of the current intern in one internship, with sequential task availability.
    """
    application = (
        db.query(Application)
        .filter(
            Application.user_id == current_user.id,
            Application.internship_id == internship_id,
            Application.status == config.APPLICATION_ACCEPTED,
        )
        .first()
    )
    if not application:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    internship = get_internship_or_404(db, internship_id)
    if not internship.learning_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Learning path not found")

    tasks = progress.ordered_tasks(internship)
    task_ids = [t.id for t in tasks]
    submissions = []
    if task_ids:
        submissions = (
            db.query(Submission)
            .filter(Submission.user_id == current_user.id, Submission.task_id.in_(task_ids))
            .all()
        )

    result = progress.task_availability(tasks, {s.task_id: s for s in submissions})
    result["internshipId"] = internship_id
    return result


# ------------------------------------------------------------------
# ADMIN STATS
# ------------------------------------------------------------------

def get_admin_stats(db: Session):
    def count(model, *criteria):
        return db.query(func.count(model.id)).filter(*criteria).scalar() or 0

    return {
        "totalUsers": count(User),
        "totalInternships": count(Internship),
        "totalLearningPaths": count(LearningPath),
        "totalApplications": count(Application),
        "pendingApplications": count(Application, Application.status == config.APPLICATION_PENDING),
        "acceptedApplications": count(Application, Application.status == config.APPLICATION_ACCEPTED),
        "totalSubmissions": count(Submission),
        "pendingSubmissions": count(Submission, Submission.status == config.SUBMISSION_PENDING),
    }
