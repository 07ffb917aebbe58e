from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.base import Base, utcnow


class AutomationLogEntry(Base):
    """
    Append-only audit record of an automation run (meeting sync, week
    generation). Rows are never updated or deleted by the engine.
    """

    __tablename__ = "automation_logs"

    id = Column(Integer, primary_key=True, index=True)

    kind = Column(String(32), nullable=False, index=True)
    outcome = Column(String(16), nullable=False)
    message = Column(Text, nullable=False)

    # JSON-encoded payload (provider response, error detail, counts)
    details = Column(Text, nullable=True)

    # Plain integers rather than foreign keys: audit rows outlive the
    # templates and occurrences they mention.
    template_id = Column(Integer, nullable=True, index=True)
    occurrence_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<AutomationLogEntry id={self.id} kind={self.kind} outcome={self.outcome}>"
