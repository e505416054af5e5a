from patronat.models.models import *  # noqa: F401,F403
from patronat.models.models import (  # noqa: F401
    Document,
    JSONType,
    UserRole,
    PartnerStatus,
    GameStatus,
    CrewStatus,
    ParticipationStatus,
    EventStatus,
    ChangeType,
    MessageSender,
    PAYMENT_FRACTIONS,
)
