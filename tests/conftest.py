import os
import tempfile

# Must be set before config/database are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="internship-tracker-logs-")

from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

import config
import crud
import main
import models
import schemas
import sessions
from database import Base, SessionLocal, engine

PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def reset_state() -> Iterator[None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    sessions.sessions.clear()
    yield
    sessions.sessions.clear()


@pytest.fixture()
def db() -> Iterator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Iterator[TestClient]:
    with TestClient(main.app) as test_client:
        yield test_client


def make_user(db, username: str, role: str = config.ROLE_INTERN) -> models.User:
    payload = schemas.UserCreate(
        username=username,
        password=PASSWORD,
        name=username.title(),
        email=f"{username}@example.com",
    )
    return crud.create_user(db, payload, role=role)


def login(client: TestClient, username: str) -> dict:
    response = client.post("/login", json={"username": username, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {config.SESSION_HEADER: response.json()["session_token"]}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture()
def program(db):
    """
    An internship that started 10 days ago and runs 20 days, with a learning path of
    three tasks (deadline offsets 3, 15, 18 days) and one accepted intern.
    """
    admin = make_user(db, "admin", config.ROLE_ADMIN)
    intern = make_user(db, "intern")

    path = crud.create_learning_path(
        db,
        schemas.LearningPathCreate(
            title="Backend basics",
            tasks=[
                schemas.TaskCreate(title="Setup", order=1, deadline_offset=3),
                schemas.TaskCreate(title="API", order=2, deadline_offset=15),
                schemas.TaskCreate(title="Deploy", order=3, deadline_offset=18),
            ],
        ),
    )
    start = utcnow() - timedelta(days=10)
    internship = crud.create_internship(
        db,
        schemas.InternshipCreate(
            title="Summer internship",
            capacity=5,
            start_date=start,
            end_date=start + timedelta(days=20),
            learning_path_id=path.id,
        ),
    )
    application = crud.apply_to_internship(db, internship["id"], intern)
    crud.review_application(db, application["id"], schemas.ApplicationReview(action="accept"), admin)

    return {
        "admin": admin,
        "intern": intern,
        "path": path,
        "tasks": list(path.tasks),
        "internship": internship,
        "application": application,
    }
