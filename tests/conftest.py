# tests/conftest.py
import json
import os
from datetime import datetime, timedelta, timezone

# app.database 가 import 되기 전에 설정 (PostgreSQL 없이 테스트)
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

import app.models.group  # noqa: F401  테이블 메타데이터 등록용
import app.models.ledger  # noqa: F401
import app.models.participant  # noqa: F401
import app.models.plan  # noqa: F401
import app.models.profile  # noqa: F401
from app.crud.plan_crud import create_plan
from app.database import get_db
from app.main import app as fastapi_app
from app.models.base import Base
from app.models.group import ROLE_ADMIN, ROLE_MEMBER, Group, GroupMember
from app.models.profile import Profile
from app.realtime import sse_pubsub
from app.services.notification_service import get_push_gateway


def make_sqlite_engine(url: str, begin: str = "BEGIN"):
    """
    파일 SQLite 엔진. pysqlite 자체 트랜잭션 처리를 끄고 BEGIN을 직접 발행 (SAVEPOINT 지원).
    begin="BEGIN IMMEDIATE" 면 트랜잭션 시작부터 쓰기 잠금 (PostgreSQL 행 잠금처럼 요청을 직렬화).
    """
    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30}, future=True)

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql(begin)

    return engine


class FakeGateway:
    """푸시 gateway 대역. fail_tokens 에 있는 토큰은 error 로 응답."""

    def __init__(self):
        self.messages = []
        self.fail_tokens = set()

    async def __call__(self, message):
        self.messages.append(message)
        if message["token"] in self.fail_tokens:
            return {"status": "error", "message": "DeviceNotRegistered"}
        return {"status": "ok"}

    def kinds(self):
        return [m["data"]["kind"] for m in self.messages]


class FakeRedis:
    """publish 만 기록하는 Redis 대역."""

    def __init__(self):
        self.published = []

    async def publish(self, channel, data):
        self.published.append((channel, json.loads(data)))
        return 1

    def operations(self, channel):
        return [payload["operation"] for ch, payload in self.published if ch == channel]


@pytest.fixture
def engine(tmp_path):
    engine = make_sqlite_engine(f"sqlite:///{tmp_path / 'groupplan.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(sse_pubsub, "redis_client", fake)
    return fake


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, gateway):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_push_gateway] = lambda: gateway
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_group(db):
    """멤버 size 명인 그룹 생성. 첫 멤버가 생성자(admin)."""

    def _make(size=4, scores=None, with_tokens=True, names=None):
        profiles = []
        for i in range(size):
            profile = Profile(
                full_name=names[i] if names else f"member{i + 1}",
                push_token=f"ExponentPushToken[{i + 1}]" if with_tokens else None,
            )
            if scores is not None:
                profile.commitment_score = scores[i]
            db.add(profile)
            profiles.append(profile)
        db.flush()

        group = Group(name="friday crew", created_by=profiles[0].id)
        db.add(group)
        db.flush()
        for i, profile in enumerate(profiles):
            db.add(GroupMember(group_id=group.id, user_id=profile.id, role=ROLE_ADMIN if i == 0 else ROLE_MEMBER))
        db.commit()
        return group, profiles

    return _make


@pytest.fixture
def make_plan(db):
    def _make(group, creator, min_attendees=3, title="Jazz night"):
        plan = create_plan(
            db,
            event_id="evt-123",
            group_id=group.id,
            creator_id=creator.id,
            min_attendees=min_attendees,
            planned_date=datetime.now(timezone.utc) + timedelta(days=3),
            title=title,
        )
        db.commit()
        return plan

    return _make
