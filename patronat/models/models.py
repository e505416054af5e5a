from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    JSON,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from patronat.extensions import db

JSONType = JSON().with_variant(JSONB, 'postgresql')


class Document(db.Model):
    """A single document of the hierarchical store.

    ``path`` is the full slash separated location (``partners/abc/payments/xyz``)
    and ``collection`` the path of the parent collection (``partners/abc/payments``).
    """

    __tablename__ = 'documents'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    path: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    collection: Mapped[str] = mapped_column(String(512), nullable=False)
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index('ix_documents_collection', 'collection'),
    )

    def __repr__(self) -> str:
        return f"<Document {self.path}>"


class UserRole(Enum):
    ADMIN = "admin"
    USER = "user"


class PartnerStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class GameStatus(Enum):
    ACTIVE = "Activo"
    INACTIVE = "Inactivo"
    PLANNED = "Planificado"
    COMPLETED = "Completado"


class CrewStatus(Enum):
    PENDING = "Pendiente"
    ACTIVE = "Activo"
    INACTIVE = "Inactivo"


class ParticipationStatus(Enum):
    PENDING = "Pendiente"
    PLAYED = "Participado"


class EventStatus(Enum):
    ACTIVE = "Activo"
    INACTIVE = "Inactivo"
    COMPLETED = "Completado"


class ChangeType(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MessageSender(Enum):
    USER = "user"
    SUPPORT = "support"


# Collection names of the document store
PARTNERS = 'partners'
PAYMENTS = 'payments'
SEASONS = 'seasons'
GAMES = 'games'
CREWS = 'crews'
EVENTS = 'events'
FORM_FIELDS = 'formCamps'
INSCRIPTIONS = 'inscriptions'
USERS = 'users'
COLLABORATORS = 'collaborators'
PARTICIPANTS = 'participants'
UPLOADS = 'uploads'
CHANGES = 'changes'
CHATS = 'chats'
MESSAGES = 'messages'

# Payment fractions: (canonical paid flag, legacy flag, date field, price field)
PAYMENT_FRACTIONS = (
    ('firstPaymentDone', 'firstPayment', 'firstPaymentDate', 'firstPaymentPrice'),
    ('secondPaymentDone', 'secondPayment', 'secondPaymentDate', 'secondPaymentPrice'),
    ('thirdPaymentDone', 'thirdPayment', 'thirdPaymentDate', 'thirdPaymentPrice'),
)
