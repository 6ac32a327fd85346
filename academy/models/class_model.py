# academy/models/class_model.py
from sqlalchemy import Column, String, Integer, ForeignKey, Time, Enum
from sqlalchemy.dialects.postgresql import UUID
from .base import Base
import enum


class WeekDay(enum.Enum):
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class ClassModel(Base):
    __tablename__ = "classes"

    course_id = Column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    # Advisory only; seats are enforced per session
    capacity = Column(Integer, nullable=False, default=0)


class Session(Base):
    __tablename__ = "sessions"

    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False, index=True)
    day = Column(Enum(WeekDay), nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    capacity = Column(Integer, nullable=False)

    @property
    def time_label(self) -> str:
        return f"{self.start_time.strftime('%H:%M')} - {self.end_time.strftime('%H:%M')}"
