import enum

from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .shared.business_time import UTCDateTime


class Role(str, enum.Enum):
    ADMIN = "administrador"
    OWNER = "dueño"
    EMPLOYEE = "empleado"
    CLIENT = "cliente"


STAFF_ROLES = (Role.ADMIN.value, Role.OWNER.value, Role.EMPLOYEE.value)
MANAGER_ROLES = (Role.ADMIN.value, Role.OWNER.value)


class AppointmentStatus(str, enum.Enum):
    PENDING = "Pendiente"
    CONFIRMED = "Confirmada"
    COMPLETED = "Completada"
    CANCELLED = "Cancelada"
    NO_SHOW = "No Asistió"


# Statuses that no longer occupy the employee's timeline
RELEASED_STATUSES = (AppointmentStatus.CANCELLED.value, AppointmentStatus.NO_SHOW.value)


class AbsenceReason(str, enum.Enum):
    VACATION = "Vacaciones"
    ILLNESS = "Enfermedad"
    PERMISSION = "Permiso"
    OTHER = "Otro"


BLOCKING_ABSENCE_REASONS = frozenset(reason.value for reason in AbsenceReason)


class AbsenceStatus(str, enum.Enum):
    PENDING = "pendiente"
    APPROVED = "aprobada"
    CANCELLED = "cancelada"


class User(Base):
    __tablename__ = "usuarios"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    nombre = Column(String(100), nullable=True)
    apellido = Column(String(100), nullable=True)
    telefono = Column(String(30), nullable=True)
    rol = Column(String(30), default=Role.CLIENT.value, nullable=False)
    activo = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="user", uselist=False)
    employee = relationship("Employee", back_populates="user", uselist=False)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.nombre, self.apellido) if part) or self.email


class Client(Base):
    __tablename__ = "clientes"

    id = Column(Integer, primary_key=True, index=True)
    usuario_id = Column(Integer, ForeignKey("usuarios.id"), unique=True, nullable=False)
    fecha_nacimiento = Column(Date, nullable=True)
    genero = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="client")
    appointments = relationship("Appointment", back_populates="client")


class Employee(Base):
    __tablename__ = "empleados"

    id = Column(Integer, primary_key=True, index=True)
    usuario_id = Column(Integer, ForeignKey("usuarios.id"), unique=True, nullable=False)
    titulo = Column(String(100), nullable=True)
    biografia = Column(Text, nullable=True)
    activo = Column(Boolean, default=True, nullable=False)

    user = relationship("User", back_populates="employee")
    appointments = relationship("Appointment", back_populates="employee")
    absences = relationship("Absence", back_populates="employee")


class ServiceCategory(Base):
    __tablename__ = "categorias_servicios"

    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String(100), nullable=False)

    services = relationship("Service", back_populates="category")


class Service(Base):
    __tablename__ = "servicios"

    id = Column(Integer, primary_key=True, index=True)
    categoria_id = Column(Integer, ForeignKey("categorias_servicios.id"), nullable=True)
    nombre = Column(String(150), nullable=False)
    descripcion = Column(Text, nullable=True)
    precio = Column(Numeric(10, 2), nullable=False)
    duracion_minutos = Column(Integer, default=30, nullable=False)
    activo = Column(Boolean, default=True, nullable=False)

    category = relationship("ServiceCategory", back_populates="services")


class Appointment(Base):
    __tablename__ = "citas"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="ck_citas_intervalo"),
        Index("ix_citas_empleado_inicio", "empleado_id", "starts_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    cliente_id = Column(Integer, ForeignKey("clientes.id"), nullable=False, index=True)
    empleado_id = Column(Integer, ForeignKey("empleados.id"), nullable=False)
    starts_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=False)
    status = Column(String(20), default=AppointmentStatus.PENDING.value, nullable=False)
    notas = Column(Text, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("usuarios.id"), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    reminder_sent = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="appointments")
    employee = relationship("Employee", back_populates="appointments")
    services = relationship(
        "AppointmentService", back_populates="appointment", cascade="all, delete-orphan"
    )
    payments = relationship("Payment", back_populates="appointment", cascade="all, delete-orphan")


class AppointmentService(Base):
    __tablename__ = "cita_servicio"

    id = Column(Integer, primary_key=True, index=True)
    cita_id = Column(Integer, ForeignKey("citas.id", ondelete="CASCADE"), nullable=False)
    servicio_id = Column(Integer, ForeignKey("servicios.id"), nullable=False)
    cantidad = Column(Integer, default=1, nullable=False)
    precio_aplicado = Column(Numeric(10, 2), nullable=False)  # Catalog price at booking time
    descuento = Column(Numeric(10, 2), default=0, nullable=False)
    notas = Column(String(500), nullable=True)

    appointment = relationship("Appointment", back_populates="services")
    service = relationship("Service")


class Payment(Base):
    __tablename__ = "pagos"

    id = Column(Integer, primary_key=True, index=True)
    cita_id = Column(Integer, ForeignKey("citas.id", ondelete="CASCADE"), nullable=False)
    monto_total = Column(Numeric(10, 2), nullable=False)
    metodo_pago = Column(String(30), default="efectivo", nullable=False)
    estado = Column(String(30), default="pendiente", nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    appointment = relationship("Appointment", back_populates="payments")


class Absence(Base):
    __tablename__ = "ausencias_empleados"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="ck_ausencias_intervalo"),
        Index("ix_ausencias_empleado_inicio", "empleado_id", "starts_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    empleado_id = Column(Integer, ForeignKey("empleados.id"), nullable=False)
    starts_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=False)
    motivo = Column(String(30), nullable=False)  # Vacaciones, Enfermedad, Permiso, Otro
    descripcion = Column(String(500), nullable=True)
    status = Column(String(20), default=AbsenceStatus.PENDING.value, nullable=False)
    created_by = Column(Integer, ForeignKey("usuarios.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee", back_populates="absences")

    @property
    def aprobada(self) -> bool:
        return self.status == AbsenceStatus.APPROVED.value


class Notification(Base):
    __tablename__ = "notificaciones"

    id = Column(Integer, primary_key=True, index=True)
    usuario_id = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    cita_id = Column(Integer, ForeignKey("citas.id", ondelete="SET NULL"), nullable=True)
    tipo = Column(String(50), nullable=False)  # confirmacion, cancelacion, recordatorio
    titulo = Column(String(200), nullable=False)
    mensaje = Column(Text, nullable=False)
    leida = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


# PostgreSQL enforces the no-overlap invariant in the database as well.
event.listen(
    Appointment.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        "ALTER TABLE citas ADD CONSTRAINT ex_citas_sin_solapamiento "
        "EXCLUDE USING gist (empleado_id WITH =, tsrange(starts_at, ends_at, '[)') WITH &&) "
        "WHERE (status NOT IN ('Cancelada', 'No Asistió'))"
    ).execute_if(dialect="postgresql"),
)

OVERLAP_CONSTRAINT_NAME = "ex_citas_sin_solapamiento"
