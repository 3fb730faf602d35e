"""Shared fixtures: an in-memory collection and ASGI-backed HTTP clients.

Route tests replace the get_expenses_collection dependency with
tests.fake_mongo.FakeCollection, so no MongoDB is needed.
"""

import os

# Fixed configuration for the app under test; must be set before main is imported
os.environ["API_PREFIX"] = "/api"
os.environ["FRONTEND_URL"] = "http://localhost:5173,https://expenses.example.com"
os.environ["PREVIEW_ORIGIN_REGEX"] = r"https://[a-z0-9-]+\.vercel\.app"
os.environ["RATE_LIMIT"] = "5/minute"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient

from client.api_client import ExpenseApiClient
from main import app
from routes import get_expenses_collection
from tests.fake_mongo import FakeCollection


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def sample_expense():
    return {
        "title": "Groceries at the market",
        "amount": 42.5,
        "category": "Food & Dining",
        "date": "2024-01-15",
        "notes": "weekly shop",
    }


@pytest.fixture
async def client(collection):
    """HTTP client for the FastAPI app with the collection dependency overridden."""
    app.dependency_overrides[get_expenses_collection] = lambda: collection
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
async def api_client(collection):
    """ExpenseApiClient talking to the app in-process."""
    app.dependency_overrides[get_expenses_collection] = lambda: collection
    async with ExpenseApiClient(base_url="http://testserver", transport=ASGITransport(app=app)) as api:
        yield api
    app.dependency_overrides.clear()
