"""
Scheduled job persistence model
"""

from sqlalchemy import Column, String, Text, DateTime, Enum, Integer, JSON
import enum

from cinego.models.base import BaseModel


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScheduledJob(BaseModel):
    """
    Durable delayed task. Survives restarts of the process that scheduled it;
    any worker polling the table may pick it up once ``run_at`` has passed.
    """
    __tablename__ = "scheduled_jobs"

    name = Column(String(100), nullable=False, index=True)
    payload = Column(JSON, default=dict, nullable=False)
    run_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(Enum(JobStatus), default=JobStatus.PENDING, nullable=False, index=True)

    attempts = Column(Integer, default=0, nullable=False)
    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))
    last_error = Column(Text)

    def __repr__(self):
        return f"<ScheduledJob(id={self.id}, name={self.name}, status={self.status}, run_at={self.run_at})>"
