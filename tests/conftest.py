# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from decimal import Decimal
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dealroom.api.v1.dependencies import get_event_emitter, get_presence_oracle
from dealroom.core.security import create_access_token
from dealroom.db.session import Base
from dealroom.db.session import get_db as app_get_session
from dealroom.main import app as fastapi_app
from dealroom.models import ActorRole, AwaitingRole, Conversation, FlowState
from dealroom.services import Actor, ConversationService
from dealroom.services.events import NullPresenceOracle

TEST_DB_URL = "sqlite://"

BRAND_OWNER_ID = 10
INFLUENCER_ID = 20
ADMIN_ID = 1


class RecordingEventEmitter:
    """Keeps every emitted event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        self.events.append((event_name, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own; let SQLAlchemy issue it so SAVEPOINTs nest correctly.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record) -> None:  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def emitter() -> RecordingEventEmitter:
    return RecordingEventEmitter()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI, db_session: Session, emitter: RecordingEventEmitter
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_event_emitter] = lambda: emitter
    app.dependency_overrides[get_presence_oracle] = NullPresenceOracle
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_event_emitter, None)
        app.dependency_overrides.pop(get_presence_oracle, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def brand_owner() -> Actor:
    return Actor(user_id=BRAND_OWNER_ID, role=ActorRole.BRAND_OWNER)


@pytest.fixture()
def influencer() -> Actor:
    return Actor(user_id=INFLUENCER_ID, role=ActorRole.INFLUENCER)


@pytest.fixture()
def admin() -> Actor:
    return Actor(user_id=ADMIN_ID, role=ActorRole.ADMIN)


@pytest.fixture()
def service(db_session: Session, emitter: RecordingEventEmitter) -> ConversationService:
    return ConversationService(db_session, emitter=emitter, presence=NullPresenceOracle())


@pytest.fixture()
def make_conversation(db_session: Session) -> Callable[..., Conversation]:
    """Persist a conversation positioned anywhere in the flow."""

    def _make(
        flow_state: FlowState = FlowState.INFLUENCER_RESPONDING,
        awaiting_role: AwaitingRole | None = AwaitingRole.INFLUENCER,
        *,
        agreed_amount: Decimal | None = None,
        current_offer: Decimal | None = None,
        **overrides: Any,
    ) -> Conversation:
        flow_data: dict[str, Any] = {}
        if agreed_amount is not None:
            flow_data["agreed_amount"] = str(agreed_amount)
        if current_offer is not None:
            flow_data["current_offer"] = str(current_offer)
        values: dict[str, Any] = {
            "brand_owner_id": BRAND_OWNER_ID,
            "influencer_id": INFLUENCER_ID,
            "campaign_id": 100,
            "bid_id": None,
            "flow_state": flow_state,
            "awaiting_role": awaiting_role,
            "negotiation_round": 0,
            "max_negotiation_rounds": 3,
            "negotiation_history": [],
            "flow_data": flow_data,
            "revision_count": 0,
        }
        values.update(overrides)
        conversation = Conversation(**values)
        db_session.add(conversation)
        db_session.commit()
        return conversation

    return _make


def auth_headers(actor: Actor) -> dict[str, str]:
    token = create_access_token(actor.user_id, actor.role.value)
    return {"Authorization": f"Bearer {token}"}
