"""
Shared Test Fixtures and Configuration

Fixtures for a file-backed SQLite remote store and a temporary local cache.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Settings are read at import time; keep tests off the developer database
_scratch = tempfile.mkdtemp(prefix="practice-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_scratch}/app.db")
os.environ.setdefault("PRACTICE_CACHE_DIR", f"{_scratch}/cache")

from app.db import init_db  # noqa: E402
from app.settings import settings  # noqa: E402
from app.local_cache import LocalPracticeCache  # noqa: E402
from app.store import PracticeRecordStore  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
	engine = create_engine(f"sqlite:///{tmp_path}/remote.db", connect_args={"check_same_thread": False}, future=True)
	init_db(engine)
	yield sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
	engine.dispose()


@pytest.fixture
def cache(tmp_path) -> LocalPracticeCache:
	return LocalPracticeCache(tmp_path / "cache")


@pytest.fixture
def store(session_factory, cache) -> PracticeRecordStore:
	return PracticeRecordStore(session_factory, cache, fetch_limit=50)


@pytest.fixture
def auth_headers():
	"""Build a bearer header for ``user_id``, signed the way the account service signs."""
	def _headers(user_id: str) -> dict:
		token = jwt.encode({"sub": user_id}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
		return {"Authorization": f"Bearer {token}"}
	return _headers
