import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import fakeredis  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import Engine, StaticPool, create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.orm.session import Session  # noqa: E402

from felicity.database.db import Base, get_db  # noqa: E402
from felicity.main import app  # noqa: E402

# Import models so that they register with Base.metadata
from felicity.models.capacity import CapacityEntry  # noqa: E402,F401
from felicity.models.events import Event, EventEligibility, EventStatus, EventType, MerchandiseVariant  # noqa: E402
from felicity.models.registrations import Registration  # noqa: E402,F401
from felicity.models.users import ParticipantType, User, UserRole  # noqa: E402
from felicity.services.capacity import CapacityKey, CapacityLedger, VariantKey  # noqa: E402

# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

NOW = datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture(autouse=True)
def setup_database():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Session:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def redis_client(monkeypatch: pytest.MonkeyPatch, fake_redis):
    """Route every lock through one fake Redis server."""
    monkeypatch.setattr("felicity.services.locking.get_redis_client", lambda: fake_redis)
    return fake_redis


@pytest.fixture
def sent_emails(monkeypatch: pytest.MonkeyPatch):
    sent = []
    monkeypatch.setattr("felicity.tasks.send_ticket_email", lambda payload: sent.append(payload))
    return sent


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(redis_client, sent_emails):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ---------- Factories ----------
def make_user(
    db: Session,
    email: str,
    *,
    role: UserRole = UserRole.PARTICIPANT,
    participant_type: ParticipantType | None = ParticipantType.IIIT,
    first_name: str = "Test",
    last_name: str = "User",
) -> User:
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        role=role.value,
        participant_type=participant_type.value if participant_type else None,
    )
    db.add(user)
    db.commit()
    return user


def make_event(
    db: Session,
    organizer: User,
    *,
    event_type: EventType = EventType.NORMAL,
    eligibility: EventEligibility = EventEligibility.ALL,
    status: EventStatus = EventStatus.PUBLISHED,
    registration_limit: int | None = None,
    registration_fee: Decimal = Decimal("0"),
    deadline: datetime = NOW + timedelta(days=5),
    start: datetime = NOW + timedelta(days=7),
    custom_form: list | None = None,
    variants: list[dict] | None = None,
    stock_quantity: int | None = None,
    purchase_limit: int = 1,
) -> Event:
    event = Event(
        organizer_id=organizer.id,
        name="Felicity Night",
        description="",
        event_type=event_type.value,
        eligibility=eligibility.value,
        status=status.value,
        registration_limit=registration_limit,
        registration_deadline=deadline,
        event_start_date=start,
        event_end_date=start + timedelta(hours=4),
        registration_fee=registration_fee,
        custom_form=custom_form,
        stock_quantity=stock_quantity,
        purchase_limit=purchase_limit,
        variants=[MerchandiseVariant(position=i, **variant) for i, variant in enumerate(variants or [])],
    )
    db.add(event)
    db.flush()
    if event_type == EventType.NORMAL:
        CapacityLedger(db).open(CapacityKey.seats(event.id), registration_limit)
    db.commit()
    return event


@pytest.fixture
def organizer(db_session: Session) -> User:
    return make_user(db_session, "organizer@clubs.iiit.ac.in", role=UserRole.ORGANIZER, participant_type=None)


@pytest.fixture
def participant(db_session: Session) -> User:
    return make_user(db_session, "alice@students.iiit.ac.in", first_name="Alice", last_name="Rao")


@pytest.fixture
def outsider(db_session: Session) -> User:
    return make_user(
        db_session,
        "bob@example.com",
        participant_type=ParticipantType.NON_IIIT,
        first_name="Bob",
        last_name="Das",
    )


@pytest.fixture
def tshirt_event(db_session: Session, organizer: User) -> Event:
    return make_event(
        db_session,
        organizer,
        event_type=EventType.MERCHANDISE,
        registration_fee=Decimal("250"),
        variants=[
            {"name": "M - Black", "size": "M", "color": "Black", "stock": 5},
            {"name": "L - White", "size": "L", "color": "White", "stock": 1},
        ],
        purchase_limit=3,
    )


def stock_key(event: Event, size: str, color: str) -> CapacityKey:
    return CapacityKey.stock(event.id, VariantKey(size=size, color=color))


@pytest.fixture
def session_factory():
    """Sessions bound to the test database, for code that opens its own."""
    return TestingSessionLocal
