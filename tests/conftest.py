"""
Shared test fixtures
Throwaway SQLite database and a demo company
"""

import os

# Set test environment variables BEFORE importing the application
os.environ['DATABASE_URL'] = 'sqlite:///./test.db'
os.environ['LOG_LEVEL'] = 'WARNING'
os.environ['LOG_DIR'] = 'logs/test'
os.environ['LOG_FILE'] = 'logs/test/app.log'
os.environ['SMTP_USERNAME'] = ''
os.environ['SMTP_PASSWORD'] = ''

import pytest
from fastapi.testclient import TestClient

from cofounder_expenses.main import app
from cofounder_expenses.config.database import Base, SessionLocal, engine
from cofounder_expenses.models.company import Company
from cofounder_expenses.models.user import User, UserRole

from factories import create_company, create_user


@pytest.fixture(scope="function")
def db():
    """Fresh schema and a session for each test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def company(db) -> Company:
    return create_company(db)


@pytest.fixture
def team(db, company) -> dict:
    """Three founders (A, B, C) and one member (M) in the same company"""
    return {
        "A": create_user(db, company, "Alice Founder", UserRole.FOUNDER),
        "B": create_user(db, company, "Bob Founder", UserRole.FOUNDER),
        "C": create_user(db, company, "Carol Founder", UserRole.FOUNDER),
        "M": create_user(db, company, "Mia Member", UserRole.MEMBER),
    }


@pytest.fixture
def other_company_founder(db) -> User:
    other = create_company(db, name="Globex")
    return create_user(db, other, "Oscar Outsider", UserRole.FOUNDER)
