from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models in the Class Schedule Sync service.

    Models are registered on ``Base.metadata`` by ``app.db.session``, which
    imports every model module before any schema operation.
    """
    pass


def utcnow() -> datetime:
    """Timezone-aware 'now' used for created_at/updated_at defaults."""
    return datetime.now(tz=timezone.utc)
