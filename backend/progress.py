"""
Progress evaluation for accepted interns.

Combines an internship's ordered task list with each intern's submissions and
per-intern deadline adjustments into a per-task status, an aggregate progress
percentage and a risk label. Everything here is a pure function of the
snapshot passed in; loading that snapshot is done by crud.load_progress_snapshot.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from math import floor
from typing import Dict, Iterable, List, Optional, Tuple
import logging

import config

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# STATUS LABELS
# ------------------------------------------------------------------

TASK_OVERDUE = "overdue"
TASK_COMPLETED = "completed"
TASK_PENDING = "pending"
TASK_REQUIRES_CHANGES = "requires_changes"
TASK_IN_PROGRESS = "in-progress"

SUBMISSION_STATUS_LABELS = {
    config.SUBMISSION_APPROVED: TASK_COMPLETED,
    config.SUBMISSION_PENDING: TASK_PENDING,
    config.SUBMISSION_REQUIRES_CHANGES: TASK_REQUIRES_CHANGES,
}

STATUS_BEHIND = "behind"
STATUS_AT_RISK = "at-risk"
STATUS_ON_TRACK = "on-track"

STATUS_PRIORITY = {STATUS_BEHIND: 0, STATUS_AT_RISK: 1, STATUS_ON_TRACK: 2}


@dataclass(frozen=True)
class RiskPolicy:
    """Thresholds for the at-risk label (percentage points)."""
    progress_threshold: int = config.AT_RISK_PROGRESS_THRESHOLD
    elapsed_margin: int = config.AT_RISK_ELAPSED_MARGIN


# ------------------------------------------------------------------
# HELPERS
# ------------------------------------------------------------------

def as_utc(value) -> Optional[datetime]:
    """
    Normalize a stored date/datetime to an aware UTC datetime.
    SQLite hands back naive datetimes; those are taken to be UTC already.
    """
    if value is None:
        return None
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up(value: float) -> int:
    return int(floor(value + 0.5))


def ordered_tasks(internship) -> list:
    """Tasks of the internship's learning path by `order`, ties by insertion order."""
    learning_path = internship.learning_path
    if learning_path is None:
        return []
    return sorted(learning_path.tasks, key=lambda t: (t.order or 0, t.id or 0))


def _is_approved(submission) -> bool:
    return submission is not None and submission.status == config.SUBMISSION_APPROVED


# ------------------------------------------------------------------
# PER-TASK EVALUATION
# ------------------------------------------------------------------

def resolve_deadline(start: datetime, task, adjustment=None) -> Tuple[datetime, int, bool]:
    """
    Effective deadline for one (intern, task) pair.
    Returns (deadline, offset used, whether an adjustment was applied).
    """
    if adjustment is not None:
        offset = adjustment.new_deadline_offset
    else:
        offset = task.deadline_offset
    return start + timedelta(days=offset), offset, adjustment is not None


def task_status(
    submission,
    previous_task,
    submissions_by_task: Dict[int, object],
    deadline: datetime,
    now: datetime,
) -> str:
    """
    Status of a task for one intern, by priority:
    overdue > submission status > in-progress > pending.

    Gating on the previous task reads its submission directly, not the
    status computed for it earlier in the same pass.
    """
    if submission is None and now > deadline:
        return TASK_OVERDUE

    if submission is not None:
        # REJECTED has no label of its own and reads as pending
        return SUBMISSION_STATUS_LABELS.get(submission.status, TASK_PENDING)

    previous_completed = previous_task is None or _is_approved(
        submissions_by_task.get(previous_task.id)
    )
    if previous_completed and now <= deadline:
        return TASK_IN_PROGRESS

    return TASK_PENDING


# ------------------------------------------------------------------
# AGGREGATES
# ------------------------------------------------------------------

def progress_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(100 * completed / total)


def elapsed_percentage(start: datetime, end: datetime, now: datetime) -> float:
    """Share of the internship period already elapsed, clamped to [0, 100]."""
    span = (end - start).total_seconds()
    if span <= 0:
        return 100.0 if now >= end else 0.0
    elapsed = (now - start).total_seconds() / span * 100
    return max(0.0, min(100.0, elapsed))


def overall_status(
    statuses: Iterable[str],
    progress: int,
    elapsed: float,
    policy: Optional[RiskPolicy] = None,
) -> str:
    policy = policy or RiskPolicy()
    if TASK_OVERDUE in statuses:
        return STATUS_BEHIND
    if progress < policy.progress_threshold and elapsed > progress + policy.elapsed_margin:
        return STATUS_AT_RISK
    return STATUS_ON_TRACK


def sort_interns(interns: List[dict]) -> List[dict]:
    """Stable sort: behind, then at-risk, then on-track."""
    return sorted(interns, key=lambda i: STATUS_PRIORITY[i["overallStatus"]])


def summarize(interns: List[dict]) -> dict:
    total = len(interns)
    average = 0
    if total:
        average = round_half_up(sum(i["progressPercentage"] for i in interns) / total)
    return {
        "totalInterns": total,
        "onTrack": sum(1 for i in interns if i["overallStatus"] == STATUS_ON_TRACK),
        "atRisk": sum(1 for i in interns if i["overallStatus"] == STATUS_AT_RISK),
        "behind": sum(1 for i in interns if i["overallStatus"] == STATUS_BEHIND),
        "averageProgress": average,
    }


# ------------------------------------------------------------------
# SERIALIZATION
# ------------------------------------------------------------------

def _submission_payload(submission) -> Optional[dict]:
    if submission is None:
        return None
    return {
        "id": submission.id,
        "status": submission.status,
        "githubUrl": submission.github_url,
        "submittedAt": submission.submitted_at,
        "reviewedAt": submission.reviewed_at,
        "feedback": submission.feedback,
    }


def _adjustment_payload(adjustment) -> Optional[dict]:
    if adjustment is None:
        return None
    return {
        "id": adjustment.id,
        "newDeadlineOffset": adjustment.new_deadline_offset,
        "reason": adjustment.reason,
        "adjustedAt": adjustment.adjusted_at,
    }


def _internship_payload(internship, tasks, start, end, start_defaulted, end_defaulted) -> dict:
    learning_path = internship.learning_path
    return {
        "id": internship.id,
        "title": internship.title,
        "description": internship.description,
        "capacity": internship.capacity,
        "startDate": start,
        "endDate": end,
        "startDateDefaulted": start_defaulted,
        "endDateDefaulted": end_defaulted,
        "learningPath": None if learning_path is None else {
            "id": learning_path.id,
            "title": learning_path.title,
            "description": learning_path.description,
            "tasks": [
                {
                    "id": t.id,
                    "title": t.title,
                    "order": t.order,
                    "deadlineOffset": t.deadline_offset,
                }
                for t in tasks
            ],
        },
    }


# ------------------------------------------------------------------
# INTERNSHIP EVALUATION
# ------------------------------------------------------------------

def evaluate_intern(
    application,
    tasks: list,
    submissions_by_task: Dict[int, object],
    adjustments_by_task: Dict[int, object],
    start: datetime,
    end: datetime,
    now: datetime,
    policy: Optional[RiskPolicy] = None,
) -> dict:
    """Progress record for one accepted intern."""
    intern = application.user
    task_rows = []
    previous_task = None

    for task in tasks:
        submission = submissions_by_task.get(task.id)
        adjustment = adjustments_by_task.get(task.id)
        deadline, offset, adjusted = resolve_deadline(start, task, adjustment)
        status = task_status(submission, previous_task, submissions_by_task, deadline, now)

        task_rows.append({
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "order": task.order,
            "status": status,
            "deadline": deadline.date(),
            "deadlineOffset": offset,
            "isDeadlineAdjusted": adjusted,
            "deadlineAdjustment": _adjustment_payload(adjustment),
            "submission": _submission_payload(submission),
        })
        previous_task = task

    statuses = [row["status"] for row in task_rows]
    completed = statuses.count(TASK_COMPLETED)
    total = len(task_rows)
    progress = progress_percentage(completed, total)
    elapsed = elapsed_percentage(start, end, now)

    return {
        "id": intern.id,
        "name": intern.name,
        "email": intern.email,
        "applicationId": application.id,
        "tasks": task_rows,
        "progressPercentage": progress,
        "elapsedPercentage": round_half_up(elapsed),
        "overallStatus": overall_status(statuses, progress, elapsed, policy),
        "completedTasks": completed,
        "totalTasks": total,
        "overdueTasks": statuses.count(TASK_OVERDUE),
        "pendingReview": sum(
            1 for row in task_rows if row["status"] == TASK_PENDING and row["submission"] is not None
        ),
    }


def evaluate_internship(
    internship,
    applications: Iterable,
    submissions: Iterable,
    adjustments: Iterable,
    now: Optional[datetime] = None,
    policy: Optional[RiskPolicy] = None,
) -> dict:
    """
    Progress report for every accepted intern of an internship.

    `applications` are the ACCEPTED applications (each with `.user` loaded);
    `submissions` and `adjustments` cover those users x the internship's tasks.
    A missing start or end date falls back to `now`; the fallback is logged
    and flagged on the report since it makes the risk label meaningless.
    """
    now = as_utc(now) or datetime.now(timezone.utc)
    tasks = ordered_tasks(internship)

    start = as_utc(internship.start_date)
    end = as_utc(internship.end_date)
    start_defaulted = start is None
    end_defaulted = end is None
    if start_defaulted:
        logger.warning(f"Internship {internship.id} has no start date; using current time for deadlines")
        start = now
    if end_defaulted:
        logger.warning(f"Internship {internship.id} has no end date; using current time for elapsed-time risk")
        end = now

    submissions_by_user: Dict[int, Dict[int, object]] = {}
    for submission in submissions:
        submissions_by_user.setdefault(submission.user_id, {})[submission.task_id] = submission

    adjustments_by_user: Dict[int, Dict[int, object]] = {}
    for adjustment in adjustments:
        adjustments_by_user.setdefault(adjustment.user_id, {})[adjustment.task_id] = adjustment

    interns = [
        evaluate_intern(
            application,
            tasks,
            submissions_by_user.get(application.user_id, {}),
            adjustments_by_user.get(application.user_id, {}),
            start,
            end,
            now,
            policy,
        )
        for application in applications
    ]
    interns = sort_interns(interns)

    logger.info(f"Evaluated progress for {len(interns)} interns across {len(tasks)} tasks in internship {internship.id}")

    return {
        "internship": _internship_payload(internship, tasks, start, end, start_defaulted, end_defaulted),
        "interns": interns,
        "summary": summarize(interns),
    }


# ------------------------------------------------------------------
# INTERN SELF-PROGRESS (sequential availability)
# ------------------------------------------------------------------

def task_availability(tasks: list, submissions_by_task: Dict[int, object]) -> dict:
    """
    Sequential gating view for a single intern.
    A task is available when every earlier task is approved, or when it is
    itself approved. currentTaskIndex points at the first unapproved task.
    """
    progress = {}
    completed = 0
    current_index = 0
    found_incomplete = False

    for index, task in enumerate(tasks):
        submission = submissions_by_task.get(task.id)
        is_completed = _is_approved(submission)
        progress[task.id] = {
            "taskId": task.id,
            "order": task.order,
            "completed": is_completed,
            "isAvailable": not found_incomplete or is_completed,
            "submission": _submission_payload(submission),
        }
        if is_completed:
            completed += 1
        elif not found_incomplete:
            current_index = index
            found_incomplete = True

    return {
        "totalTasks": len(tasks),
        "completedTasks": completed,
        "currentTaskIndex": current_index,
        "progressPercentage": progress_percentage(completed, len(tasks)),
        "taskProgress": progress,
    }
