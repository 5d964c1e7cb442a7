"""
Pytest configuration and fixtures
"""
import base64
import os
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add backend/src to path (tests/ and backend/ are siblings)
BACKEND_SRC = Path(__file__).resolve().parent.parent / "backend" / "src"
if str(BACKEND_SRC) not in sys.path:
    sys.path.insert(0, str(BACKEND_SRC))

# Settings are loaded once per process and require a 256-bit master key.
TEST_MASTER_KEY = base64.b64encode(b"k" * 32).decode("ascii")
os.environ.setdefault("ENCRYPTION_MASTER_KEY", TEST_MASTER_KEY)
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-service-key")

from analyzer.models import Commit, ContributionSnapshot, Issue, PullRequest, Release, Repository  # noqa: E402


def make_query_mock(data=None, count=None):
    """Supabase table mock whose builder methods all return the same object."""
    table_mock = Mock()
    for method in (
        "select",
        "insert",
        "upsert",
        "update",
        "delete",
        "eq",
        "neq",
        "gte",
        "in_",
        "order",
        "limit",
        "range",
    ):
        getattr(table_mock, method).return_value = table_mock

    execute_mock = Mock()
    execute_mock.data = [] if data is None else data
    execute_mock.count = count
    table_mock.execute.return_value = execute_mock
    return table_mock


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client with one shared query builder."""
    client = Mock()
    client.table.return_value = make_query_mock()
    return client


@pytest.fixture
def sample_snapshot():
    return ContributionSnapshot.build(
        repositories=[
            Repository(name="octo/api", url="https://github.com/octo/api", language="Python", stars=12),
            Repository(name="octo/web", url="https://github.com/octo/web", language="TypeScript"),
        ],
        commits=[
            Commit(
                sha="a1",
                message="Add rate limiter\n\nWindowed counter per user",
                date="2024-03-10T12:00:00Z",
                repository="octo/api",
                url="https://github.com/octo/api/commit/a1",
                author="octocat",
            ),
            Commit(
                sha="b2",
                message="Fix login redirect",
                date="2024-05-01T08:30:00Z",
                repository="octo/web",
                url="https://github.com/octo/web/commit/b2",
                author="octocat",
            ),
        ],
        pull_requests=[
            PullRequest(
                number=7,
                title="Streaming analysis",
                state="closed",
                created_at="2024-04-02T10:00:00Z",
                repository="octo/api",
                url="https://github.com/octo/api/pull/7",
                body="Adds SSE progress",
                author="octocat",
            ),
        ],
        issues=[
            Issue(
                number=3,
                title="Crash on empty resume",
                state="open",
                created_at="2024-02-20T09:00:00Z",
                repository="octo/web",
                url="https://github.com/octo/web/issues/3",
            ),
        ],
        releases=[
            Release(
                tag_name="v1.0.0",
                name="First release",
                created_at="2024-06-01T00:00:00Z",
                repository="octo/api",
                url="https://github.com/octo/api/releases/v1.0.0",
                download_count=42,
            ),
        ],
        languages={"Python": 1, "TypeScript": 1},
        scanned_at="2024-06-02T00:00:00+00:00",
    )
