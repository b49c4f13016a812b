import os

# Must be set before the application modules read their configuration
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RESEND_API_KEY"] = ""
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi import Depends, HTTPException, Request  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from salon.auth import get_current_user  # noqa: E402
from salon.database import Base, get_db, make_engine  # noqa: E402
from salon.domain.scheduling.schemas import BookingRequest  # noqa: E402
from salon.main import app  # noqa: E402
from salon.models import (  # noqa: E402
    Client,
    Employee,
    Role,
    Service,
    ServiceCategory,
    User,
)
from salon.shared.business_time import today_local  # noqa: E402

TEST_USER_HEADER = "X-Test-User"


def upcoming(weekday: int, weeks_ahead: int = 1) -> date:
    """A date on `weekday` (Monday=0) at least a week from today"""
    start = today_local() + timedelta(weeks=weeks_ahead)
    return start + timedelta(days=(weekday - start.weekday()) % 7)


@pytest.fixture
def engine(tmp_path):
    # File-backed so that several connections (threads) share one database
    test_engine = make_engine(f"sqlite:///{tmp_path / 'salon_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _user(db: Session, uid: str, nombre: str, apellido: str, rol: str) -> User:
    user = User(
        firebase_uid=uid,
        email=f"{uid}@example.com",
        nombre=nombre,
        apellido=apellido,
        rol=rol,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def seed(db):
    """Catalog, staff and one client"""
    category = ServiceCategory(nombre="Cabello")
    db.add(category)
    db.flush()

    corte = Service(
        categoria_id=category.id, nombre="Corte", precio=Decimal("10.00"), duracion_minutos=30
    )
    lavado = Service(
        categoria_id=category.id, nombre="Lavado", precio=Decimal("5.00"), duracion_minutos=15
    )
    retirado = Service(
        categoria_id=category.id,
        nombre="Permanente",
        precio=Decimal("40.00"),
        duracion_minutos=90,
        activo=False,
    )
    db.add_all([corte, lavado, retirado])

    admin = _user(db, "admin", "Ana", "Admin", Role.ADMIN.value)
    owner = _user(db, "owner", "Oscar", "Dueño", Role.OWNER.value)
    stylist_user = _user(db, "stylist", "Sofía", "Estilista", Role.EMPLOYEE.value)
    barber_user = _user(db, "barber", "Bruno", "Barbero", Role.EMPLOYEE.value)
    client_user = _user(db, "client", "Carla", "Cliente", Role.CLIENT.value)
    newcomer = _user(db, "newcomer", "Nico", "Nuevo", Role.CLIENT.value)

    stylist = Employee(usuario_id=stylist_user.id, titulo="Estilista")
    barber = Employee(usuario_id=barber_user.id, titulo="Barbero")
    db.add_all([stylist, barber])
    db.flush()

    client = Client(usuario_id=client_user.id)
    db.add(client)
    db.flush()

    # Ids are read before commit so that no refresh reopens a transaction
    ids = SimpleNamespace(
        corte_id=corte.id,
        lavado_id=lavado.id,
        retirado_id=retirado.id,
        admin_id=admin.id,
        owner_id=owner.id,
        stylist_user_id=stylist_user.id,
        barber_user_id=barber_user.id,
        client_user_id=client_user.id,
        newcomer_id=newcomer.id,
        stylist_id=stylist.id,
        barber_id=barber.id,
        client_id=client.id,
    )
    db.commit()
    return ids


@pytest.fixture
def client(session_factory, seed):
    """TestClient with the database and the authenticated user overridden"""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    async def override_get_current_user(request: Request, db: Session = Depends(get_db)):
        user_id = request.headers.get(TEST_USER_HEADER)
        if not user_id:
            raise HTTPException(status_code=401, detail="Not authenticated")
        user = db.get(User, int(user_id))
        if not user:
            raise HTTPException(status_code=401, detail="Unknown user")
        return user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    def headers(user_id: int) -> dict:
        return {TEST_USER_HEADER: str(user_id)}

    return headers


@pytest.fixture
def booking_request(seed):
    """Factory for valid BookingRequest objects (stylist, next week's Monday 09:15)"""

    def build(**overrides) -> BookingRequest:
        data = {
            "empleadoId": seed.stylist_id,
            "servicios": [{"id": seed.corte_id, "cantidad": 1}],
            "fecha": upcoming(0).isoformat(),
            "horario": {"inicio": "09:15"},
            "total": 10.0,
        }
        data.update(overrides)
        return BookingRequest(**data)

    return build


@pytest.fixture
def read_db(session_factory):
    """Run `fn(session)` in a short-lived session; SQLite holds its write lock until close"""

    def run(fn):
        session = session_factory()
        try:
            return fn(session)
        finally:
            session.close()

    return run
