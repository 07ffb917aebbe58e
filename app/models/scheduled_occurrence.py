from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)

from app.db.base import Base, utcnow


class ScheduledOccurrence(Base):
    """
    One dated class of a course template for a specific week.

    Course fields are copied from the template when the week is
    materialized, so later template edits do not rewrite history.
    """

    __tablename__ = "scheduled_occurrences"

    id = Column(Integer, primary_key=True, index=True)

    template_id = Column(
        Integer,
        ForeignKey("course_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    course_name = Column(String(255), nullable=False)
    level = Column(String(16), nullable=False)
    teacher_name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    messaging_group_id = Column(String(255), nullable=True)

    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time, nullable=False)

    meeting_id = Column(
        Integer,
        ForeignKey("meeting_records.id", ondelete="SET NULL"),
        nullable=True,
    )

    status = Column(String(16), nullable=False, default="pending")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "template_id",
            "scheduled_date",
            name="uq_scheduled_occurrences_template_date",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ScheduledOccurrence id={self.id} template_id={self.template_id} "
            f"date={self.scheduled_date} status={self.status}>"
        )
