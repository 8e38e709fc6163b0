from pydantic import BaseModel, EmailStr, Field
from datetime import datetime, date
from typing import Any, Optional, List, Dict


# =========================
# 🔹 USER SCHEMAS
# =========================

class UserBase(BaseModel):
    username: str
    name: Optional[str] = None
    email: Optional[EmailStr] = None


class UserCreate(UserBase):
    password: str


class UserLogin(BaseModel):
    username: str
    password: str


class UserRoleUpdate(BaseModel):
    role: str


class UserResponse(UserBase):
    id: int
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Lightweight user for admin tables (no password)."""
    id: int
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: str

    class Config:
        from_attributes = True


# =========================
# 🔹 LEARNING PATH & TASK SCHEMAS
# =========================

class TaskBase(BaseModel):
    title: str
    description: Optional[str] = None
    content: Optional[Any] = None
    order: int = Field(1, ge=1)
    deadline_offset: int = Field(7, ge=0)  # days from internship start


class TaskCreate(TaskBase):
    pass


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[Any] = None
    order: Optional[int] = Field(None, ge=1)
    deadline_offset: Optional[int] = Field(None, ge=0)


class TaskResponse(TaskBase):
    id: int
    learning_path_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class LearningPathBase(BaseModel):
    title: str
    description: Optional[str] = None


class LearningPathCreate(LearningPathBase):
    # Optional tasks created together with the path
    tasks: Optional[List[TaskCreate]] = None


class LearningPathUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class LearningPathResponse(LearningPathBase):
    id: int
    created_at: datetime
    tasks: List[TaskResponse] = []

    class Config:
        from_attributes = True


# =========================
# 🔹 INTERNSHIP SCHEMAS
# =========================

class InternshipBase(BaseModel):
    title: str
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    learning_path_id: Optional[int] = None


class InternshipCreate(InternshipBase):
    pass


class InternshipUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    learning_path_id: Optional[int] = None


class InternshipResponse(InternshipBase):
    id: int
    created_at: datetime
    learning_path_title: Optional[str] = None
    accepted_count: int = 0

    class Config:
        from_attributes = True


# =========================
# 🔹 APPLICATION SCHEMAS
# =========================

class ApplicationReview(BaseModel):
    """Either an action ("accept" / "reject") or an explicit status with feedback."""
    action: Optional[str] = None
    status: Optional[str] = None
    feedback: Optional[str] = None


class ApplicationResponse(BaseModel):
    id: int
    user_id: int
    internship_id: int
    status: str
    feedback: Optional[str] = None
    applied_at: datetime
    reviewed_at: Optional[datetime] = None
    username: Optional[str] = None
    internship_title: Optional[str] = None

    class Config:
        from_attributes = True


# =========================
# 🔹 SUBMISSION SCHEMAS
# =========================

class SubmissionCreate(BaseModel):
    task_id: int
    github_url: Optional[str] = None


class SubmissionReview(BaseModel):
    status: str  # PENDING / APPROVED / REJECTED / REQUIRES_CHANGES
    feedback: Optional[str] = None


class SubmissionResponse(BaseModel):
    id: int
    user_id: int
    task_id: int
    github_url: Optional[str] = None
    status: str
    feedback: Optional[str] = None
    admin_comment: Optional[str] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
    task_title: Optional[str] = None
    task_order: Optional[int] = None

    class Config:
        from_attributes = True


# =========================
# 🔹 DEADLINE ADJUSTMENT SCHEMAS
# =========================

class DeadlineAdjustmentUpdate(BaseModel):
    # Validated as a strict integer in crud so "7" or 7.5 are rejected as invalid input
    deadline_offset: Any = None
    reason: Optional[str] = None


class DeadlineAdjustmentResponse(BaseModel):
    id: int
    user_id: int
    task_id: int
    new_deadline_offset: int
    reason: Optional[str] = None
    adjusted_at: datetime

    class Config:
        from_attributes = True


# =========================
# 🔹 PROGRESS REPORT SCHEMAS (admin view)
# =========================

class SubmissionSummary(BaseModel):
    id: int
    status: str
    githubUrl: Optional[str] = None
    submittedAt: Optional[datetime] = None
    reviewedAt: Optional[datetime] = None
    feedback: Optional[str] = None


class AdjustmentSummary(BaseModel):
    id: int
    newDeadlineOffset: int
    reason: Optional[str] = None
    adjustedAt: Optional[datetime] = None


class TaskProgress(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    order: int
    status: str  # overdue / completed / pending / requires_changes / in-progress
    deadline: date
    deadlineOffset: int
    isDeadlineAdjusted: bool
    deadlineAdjustment: Optional[AdjustmentSummary] = None
    submission: Optional[SubmissionSummary] = None


class InternProgress(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    applicationId: int
    tasks: List[TaskProgress]
    progressPercentage: int
    elapsedPercentage: int
    overallStatus: str  # behind / at-risk / on-track
    completedTasks: int
    totalTasks: int
    overdueTasks: int
    pendingReview: int


class ProgressSummary(BaseModel):
    totalInterns: int
    onTrack: int
    atRisk: int
    behind: int
    averageProgress: int


class LearningPathOutline(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    tasks: List[Dict[str, Any]] = []


class InternshipOverview(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    capacity: Optional[int] = None
    startDate: datetime
    endDate: datetime
    startDateDefaulted: bool
    endDateDefaulted: bool
    learningPath: Optional[LearningPathOutline] = None


class InternshipProgressResponse(BaseModel):
    internship: InternshipOverview
    interns: List[InternProgress]
    summary: ProgressSummary


# =========================
# 🔹 INTERN SELF-PROGRESS SCHEMAS
# =========================

class TaskAvailability(BaseModel):
    taskId: int
    order: int
    completed: bool
    isAvailable: bool
    submission: Optional[SubmissionSummary] = None


class InternProgressResponse(BaseModel):
    internshipId: int
    totalTasks: int
    completedTasks: int
    currentTaskIndex: int
    progressPercentage: int
    taskProgress: Dict[int, TaskAvailability]
