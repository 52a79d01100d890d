"""
Fixtures for authentication tests.
"""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from app.modules.auth.schemas import RegisterRequest
from app.modules.users.models import User, UserRole


@pytest.fixture
def sample_user():
    """An active, verified student account."""
    user = MagicMock(spec=User)
    user.id = uuid4()
    user.username = "student1"
    user.email = "student@example.com"
    user.phone = "01012345678"
    user.role = UserRole.STUDENT
    user.grade = "Grade 10"
    user.password_hash = "stored-hash"
    user.is_active = True
    user.is_verified = True
    user.last_login_at = None
    user.password_changed_at = None
    return user


@pytest.fixture
def sample_register_request():
    return RegisterRequest(
        username="student1",
        email="Student@Example.com",
        phone="01012345678",
        password="secret1",
        confirm_password="secret1",
        grade="Grade 10",
    )
