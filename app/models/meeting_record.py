from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)

from app.db.base import Base, utcnow


class MeetingRecord(Base):
    """
    A recurring meeting successfully created on the meeting provider for a
    course template.

    At most one record per template is active at a time; the partial unique
    index enforces it at the storage layer.
    """

    __tablename__ = "meeting_records"

    id = Column(Integer, primary_key=True, index=True)

    template_id = Column(
        Integer,
        ForeignKey("course_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    external_meeting_id = Column(String(64), nullable=False)
    join_url = Column(Text, nullable=False)
    first_occurrence_start = Column(DateTime(timezone=True), nullable=False)
    provider_status = Column(String(32), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    retired_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_meeting_records_active_template",
            "template_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<MeetingRecord id={self.id} template_id={self.template_id} "
            f"external_id={self.external_meeting_id} active={self.is_active}>"
        )
