from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.db.base import Base, utcnow


class CourseTemplate(Base):
    """
    Weekly recurring course definition: one weekday and one time of day.

    A course taught on two days is stored as two templates. Day and time are
    kept as text (``monday``, ``20:30``) and validated again when expanded.
    """

    __tablename__ = "course_templates"

    id = Column(Integer, primary_key=True, index=True)

    course_name = Column(String(255), nullable=False)
    level = Column(String(16), nullable=False)
    teacher_name = Column(String(255), nullable=False)

    day_of_week = Column(String(16), nullable=False)
    time_of_day = Column(String(5), nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    messaging_group_id = Column(String(255), nullable=True)
    host_identity = Column(String(255), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return (
            f"<CourseTemplate id={self.id} course={self.course_name!r} "
            f"{self.day_of_week} {self.time_of_day} active={self.is_active}>"
        )
