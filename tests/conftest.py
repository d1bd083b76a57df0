import os
import tempfile

# 설정은 import 시점에 읽히므로 앱을 불러오기 전에 환경 변수를 지정
_TMP_DIR = tempfile.mkdtemp(prefix="peptides-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["ANALYTICS_FILE"] = os.path.join(_TMP_DIR, "analytics.json")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_TO_FILE"] = "false"

import pytest
from fastapi.testclient import TestClient

from database.session import Base, SessionLocal, engine
from main import app
from services.analytics_service import AnalyticsAggregator, get_analytics_aggregator
from services.rate_limiter import auth_rate_limiter, general_rate_limiter

STRONG_PASSWORD = "Abcdef12"


@pytest.fixture(autouse=True)
def analytics(tmp_path):
    """테스트마다 빈 DB, 초기화된 요청 제한, 임시 파일 기반 분석 집계기"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    general_rate_limiter.reset()
    auth_rate_limiter.reset()

    aggregator = AnalyticsAggregator(str(tmp_path / "analytics.json"))
    app.dependency_overrides[get_analytics_aggregator] = lambda: aggregator
    yield aggregator
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def register(client, email="a@x.com", password=STRONG_PASSWORD, **extra):
    payload = {"email": email, "password": password}
    payload.update(extra)
    return client.post("/auth/register", json=payload)


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_token(client):
    r = register(client, firstName="Ada", lastName="Lovelace")
    assert r.status_code == 201
    return r.json()["data"]["token"]
