import os

os.environ.setdefault("OPENAI_API_KEY", "test-key")

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from staffplan.api.database.database_service import DatabaseService
from staffplan.config import Settings
from staffplan.main import create_app
from tests.fakes import FakeCollection, FakeLLMClient


def make_settings(**overrides) -> Settings:
    settings = Settings(
        openai_api_key="test-key",
        openai_base_url="http://llm.test/v1",
        reasoning_model="reasoning-model",
        parser_model="parser-model",
        chat_model="chat-model",
        llm_max_retries=0,
        mongo_url="mongodb://localhost:27017/test",
        mongo_db="test_db",
        log_level="WARNING",
    )
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_llm(settings) -> FakeLLMClient:
    return FakeLLMClient(settings)


@pytest.fixture
def database() -> DatabaseService:
    return DatabaseService(FakeCollection(), FakeCollection())


@pytest.fixture
def app_factory(settings, fake_llm, database):
    def _factory(**settings_overrides):
        app_settings = settings.model_copy(update=settings_overrides) if settings_overrides else settings
        return create_app(app_settings, llm=fake_llm, database=database)

    return _factory


@pytest.fixture
async def client(app_factory, fake_llm, database):
    app = app_factory()
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as http_client:
            http_client.app = app  # type: ignore[attr-defined]
            http_client.fake_llm = fake_llm  # type: ignore[attr-defined]
            http_client.database = database  # type: ignore[attr-defined]
            yield http_client
