from datetime import datetime, timedelta, timezone

import pytest

import config
import models
import progress

START = datetime(2025, 6, 2, tzinfo=timezone.utc)


def day(n: float) -> datetime:
    return START + timedelta(days=n)


def build_internship(offsets, start=START, end=None, orders=None):
    path = models.LearningPath(id=1, title="Path")
    orders = orders or list(range(1, len(offsets) + 1))
    for index, (offset, order) in enumerate(zip(offsets, orders), start=1):
        path.tasks.append(
            models.Task(id=index, title=f"Task {index}", order=order, deadline_offset=offset)
        )
    return models.Internship(
        id=1,
        title="Internship",
        start_date=start,
        end_date=end if end is not None else day(30),
        learning_path=path,
    )


def accepted(user_id: int, name: str = None) -> models.Application:
    user = models.User(id=user_id, username=f"user{user_id}", name=name or f"User {user_id}", email=f"u{user_id}@example.com")
    return models.Application(id=100 + user_id, user_id=user_id, user=user, status=config.APPLICATION_ACCEPTED)


def submission(user_id: int, task_id: int, status: str) -> models.Submission:
    return models.Submission(id=1000 + user_id * 10 + task_id, user_id=user_id, task_id=task_id, status=status)


def adjustment(user_id: int, task_id: int, offset: int) -> models.DeadlineAdjustment:
    return models.DeadlineAdjustment(id=500 + task_id, user_id=user_id, task_id=task_id, new_deadline_offset=offset, reason="sick leave")


def statuses(report, user_id: int = 1):
    intern = next(i for i in report["interns"] if i["id"] == user_id)
    return [t["status"] for t in intern["tasks"]]


def test_missing_submission_after_deadline_is_overdue():
    report = progress.evaluate_internship(build_internship([7]), [accepted(1)], [], [], now=day(8))

    task = report["interns"][0]["tasks"][0]
    assert task["status"] == progress.TASK_OVERDUE
    assert task["deadline"] == day(7).date()
    assert task["isDeadlineAdjusted"] is False
    assert report["interns"][0]["overallStatus"] == progress.STATUS_BEHIND


def test_deadline_adjustment_moves_task_back_in_progress():
    report = progress.evaluate_internship(
        build_internship([7]), [accepted(1)], [], [adjustment(1, 1, 14)], now=day(8)
    )

    task = report["interns"][0]["tasks"][0]
    assert task["status"] == progress.TASK_IN_PROGRESS
    assert task["deadlineOffset"] == 14
    assert task["deadline"] == day(14).date()
    assert task["isDeadlineAdjusted"] is True
    assert task["deadlineAdjustment"]["reason"] == "sick leave"


def test_adjustment_only_applies_to_its_own_intern():
    report = progress.evaluate_internship(
        build_internship([7]), [accepted(1), accepted(2)], [], [adjustment(1, 1, 14)], now=day(8)
    )

    assert statuses(report, 1) == [progress.TASK_IN_PROGRESS]
    assert statuses(report, 2) == [progress.TASK_OVERDUE]


def test_approved_submission_is_completed_even_past_deadline():
    report = progress.evaluate_internship(
        build_internship([7]), [accepted(1)], [submission(1, 1, config.SUBMISSION_APPROVED)], [], now=day(40)
    )

    assert statuses(report) == [progress.TASK_COMPLETED]
    assert report["interns"][0]["progressPercentage"] == 100


@pytest.mark.parametrize(
    "submission_status, expected",
    [
        (config.SUBMISSION_PENDING, progress.TASK_PENDING),
        (config.SUBMISSION_REQUIRES_CHANGES, progress.TASK_REQUIRES_CHANGES),
        (config.SUBMISSION_REJECTED, progress.TASK_PENDING),
    ],
)
def test_submission_status_wins_over_deadline(submission_status, expected):
    report = progress.evaluate_internship(
        build_internship([7]), [accepted(1)], [submission(1, 1, submission_status)], [], now=day(20)
    )

    assert statuses(report) == [expected]


def test_rejected_submission_reads_as_pending_and_never_overdue():
    internship = build_internship([7, 14])
    rejected = submission(1, 1, config.SUBMISSION_REJECTED)

    before = progress.task_status(rejected, None, {1: rejected}, day(7), now=day(2))
    after = progress.task_status(rejected, None, {1: rejected}, day(7), now=day(9))
    report = progress.evaluate_internship(internship, [accepted(1)], [rejected], [], now=day(9))

    assert before == after == progress.TASK_PENDING
    # Not approved, so the next task stays blocked
    assert statuses(report) == [progress.TASK_PENDING, progress.TASK_PENDING]
    assert report["interns"][0]["overdueTasks"] == 0


def test_next_task_in_progress_once_previous_is_approved():
    report = progress.evaluate_internship(
        build_internship([7, 14]),
        [accepted(1)],
        [submission(1, 1, config.SUBMISSION_APPROVED)],
        [],
        now=day(9),
    )

    assert statuses(report) == [progress.TASK_COMPLETED, progress.TASK_IN_PROGRESS]


def test_first_task_is_in_progress_without_gating():
    report = progress.evaluate_internship(build_internship([7, 14]), [accepted(1)], [], [], now=day(1))

    assert statuses(report) == [progress.TASK_IN_PROGRESS, progress.TASK_PENDING]


def test_gating_reads_previous_submission_not_previous_status():
    # The first task is waiting on changes, so the second stays blocked.
    report = progress.evaluate_internship(
        build_internship([7, 14]),
        [accepted(1)],
        [submission(1, 1, config.SUBMISSION_REQUIRES_CHANGES)],
        [],
        now=day(3),
    )

    assert statuses(report) == [progress.TASK_REQUIRES_CHANGES, progress.TASK_PENDING]


def test_pending_review_counts_submitted_tasks_awaiting_review():
    report = progress.evaluate_internship(
        build_internship([7, 14]),
        [accepted(1)],
        [submission(1, 1, config.SUBMISSION_PENDING)],
        [],
        now=day(3),
    )

    intern = report["interns"][0]
    assert intern["pendingReview"] == 1
    assert intern["completedTasks"] == 0
    assert intern["totalTasks"] == 2


def test_three_of_four_completed_at_half_time_is_on_track():
    internship = build_internship([5, 7, 9, 15], end=day(20))
    submissions = [submission(1, task_id, config.SUBMISSION_APPROVED) for task_id in (1, 2, 3)]

    report = progress.evaluate_internship(internship, [accepted(1)], submissions, [], now=day(10))

    intern = report["interns"][0]
    assert intern["progressPercentage"] == 75
    assert intern["elapsedPercentage"] == 50
    assert intern["overallStatus"] == progress.STATUS_ON_TRACK


def test_low_progress_late_in_internship_is_at_risk():
    internship = build_internship([15, 16, 17, 18], end=day(20))

    report = progress.evaluate_internship(
        internship, [accepted(1)], [submission(1, 1, config.SUBMISSION_APPROVED)], [], now=day(10)
    )

    intern = report["interns"][0]
    assert intern["progressPercentage"] == 25
    assert intern["overdueTasks"] == 0
    assert intern["overallStatus"] == progress.STATUS_AT_RISK


def test_risk_policy_is_configurable():
    internship = build_internship([15, 16, 17, 18], end=day(20))
    lenient = progress.RiskPolicy(progress_threshold=20, elapsed_margin=20)

    report = progress.evaluate_internship(
        internship, [accepted(1)], [submission(1, 1, config.SUBMISSION_APPROVED)], [], now=day(10), policy=lenient
    )

    assert report["interns"][0]["overallStatus"] == progress.STATUS_ON_TRACK


def test_interns_sorted_by_status_priority_and_stable():
    internship = build_internship([3, 25], end=day(20))
    applications = [accepted(1), accepted(2), accepted(3), accepted(4)]
    submissions = [
        # intern 1: first task done, second in progress, early in the internship -> on-track
        submission(1, 1, config.SUBMISSION_APPROVED),
        # intern 2: nothing submitted, first task overdue -> behind
        # intern 3: same as intern 1 -> on-track
        submission(3, 1, config.SUBMISSION_APPROVED),
        # intern 4: first task submitted but not approved, late -> at-risk
        submission(4, 1, config.SUBMISSION_PENDING),
    ]

    report = progress.evaluate_internship(internship, applications, submissions, [], now=day(12))

    assert [i["id"] for i in report["interns"]] == [2, 4, 1, 3]
    assert [i["overallStatus"] for i in report["interns"]] == [
        progress.STATUS_BEHIND,
        progress.STATUS_AT_RISK,
        progress.STATUS_ON_TRACK,
        progress.STATUS_ON_TRACK,
    ]
    assert report["summary"] == {
        "totalInterns": 4,
        "onTrack": 2,
        "atRisk": 1,
        "behind": 1,
        "averageProgress": 25,
    }


def test_internship_without_learning_path_reports_no_tasks():
    internship = models.Internship(id=1, title="No path", start_date=day(0), end_date=day(30))

    report = progress.evaluate_internship(internship, [accepted(1)], [], [], now=day(-1))

    intern = report["interns"][0]
    assert intern["tasks"] == []
    assert intern["totalTasks"] == 0
    assert intern["progressPercentage"] == 0
    assert intern["overallStatus"] == progress.STATUS_ON_TRACK
    assert report["internship"]["learningPath"] is None


def test_missing_dates_fall_back_to_now_and_are_flagged(caplog):
    internship = build_internship([0])
    internship.start_date = None
    internship.end_date = None
    now = day(5)

    with caplog.at_level("WARNING", logger="progress"):
        report = progress.evaluate_internship(internship, [accepted(1)], [], [], now=now)

    assert report["internship"]["startDateDefaulted"] is True
    assert report["internship"]["endDateDefaulted"] is True
    assert report["internship"]["startDate"] == now
    # Deadline anchored at "now" with a zero offset is not yet missed
    assert statuses(report) == [progress.TASK_IN_PROGRESS]
    assert "no start date" in caplog.text


def test_order_ties_fall_back_to_insertion_order():
    internship = build_internship([7, 7, 7], orders=[2, 1, 1])

    tasks = progress.ordered_tasks(internship)

    assert [t.id for t in tasks] == [2, 3, 1]


def test_naive_stored_dates_are_treated_as_utc():
    internship = build_internship([7], start=datetime(2025, 6, 2), end=datetime(2025, 7, 2))

    report = progress.evaluate_internship(internship, [accepted(1)], [], [], now=day(8))

    assert statuses(report) == [progress.TASK_OVERDUE]


@pytest.mark.parametrize(
    "completed, total, expected",
    [(0, 0, 0), (0, 4, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 3, 100)],
)
def test_progress_percentage(completed, total, expected):
    assert progress.progress_percentage(completed, total) == expected


@pytest.mark.parametrize(
    "now, expected",
    [(day(-5), 0.0), (day(0), 0.0), (day(5), 50.0), (day(10), 100.0), (day(50), 100.0)],
)
def test_elapsed_percentage_is_clamped(now, expected):
    assert progress.elapsed_percentage(day(0), day(10), now) == expected


def test_elapsed_percentage_with_empty_period():
    assert progress.elapsed_percentage(day(3), day(3), day(2)) == 0.0
    assert progress.elapsed_percentage(day(3), day(3), day(3)) == 100.0


def test_task_availability_is_sequential():
    internship = build_internship([7, 14, 21])
    tasks = progress.ordered_tasks(internship)
    submissions = {1: submission(1, 1, config.SUBMISSION_APPROVED), 2: submission(1, 2, config.SUBMISSION_PENDING)}

    view = progress.task_availability(tasks, submissions)

    assert view["completedTasks"] == 1
    assert view["currentTaskIndex"] == 1
    assert view["progressPercentage"] == 33
    assert [view["taskProgress"][t]["isAvailable"] for t in (1, 2, 3)] == [True, True, False]
