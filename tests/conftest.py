import pytest
from fastapi.testclient import TestClient

from backend.main import create_app
from backend.settings import Settings
from infrastructure.db.in_memory_repositories import (
    InMemoryMoleculeRepository,
    InMemoryTemplateRepository,
)

from tests.fixtures import TEST_INTERNAL_KEY


@pytest.fixture
def molecule_repo() -> InMemoryMoleculeRepository:
    return InMemoryMoleculeRepository()


@pytest.fixture
def template_repo() -> InMemoryTemplateRepository:
    return InMemoryTemplateRepository()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        supabase_url=None,
        supabase_service_role_key=None,
        sentry_dsn=None,
        otel_enabled=False,
        sync_history_path=None,
        internal_api_key=TEST_INTERNAL_KEY,
        _env_file=None,
    )


@pytest.fixture
def app(test_settings):
    return create_app(settings=test_settings)


@pytest.fixture
def api_client(app) -> TestClient:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def internal_headers() -> dict:
    return {"X-Internal-Key": TEST_INTERNAL_KEY}
