import os
import sys
from datetime import datetime, timedelta, timezone

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Must be set before rooms_service.database builds its engine.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_rooms.db")
os.environ.pop("REDIS_URL", None)

import pytest
from jose import jwt

from rooms_service import models
from rooms_service.auth import ALGORITHM, SECRET_KEY
from rooms_service.database import Base, SessionLocal, engine


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def active_term(db):
    db.add(models.Term(academic_year="2023-2024", term="Second Semester", status=models.TermStatus.INACTIVE))
    term = models.Term(academic_year="2024-2025", term="First Semester", status=models.TermStatus.ACTIVE)
    db.add(term)
    db.commit()
    db.refresh(term)
    return term


@pytest.fixture
def departments(db):
    cs = models.Department(department_code="CS", department_name="Computer Science")
    math = models.Department(department_code="MATH", department_name="Mathematics")
    db.add_all([cs, math])
    db.commit()
    db.refresh(cs)
    db.refresh(math)
    return {"CS": cs, "MATH": math}


def make_token(username: str, role: str, user_id=None) -> str:
    payload = {
        "sub": username,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
    }
    if user_id is not None:
        payload["user_id"] = user_id
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token('admin1', 'Administrator', user_id=1)}"}


@pytest.fixture
def faculty_headers():
    return {"Authorization": f"Bearer {make_token('faculty1', 'Faculty', user_id=7)}"}
