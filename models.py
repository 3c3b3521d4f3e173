# models.py

from sqlalchemy import Column, DateTime, String, Text
from database import Base


class Job(Base):
    """One end-to-end generation request, tracked through every stage."""

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, index=True)
    status = Column(String, nullable=False, default="created")
    raw_prompt = Column(Text, nullable=False, default="")
    refined_prompt = Column(Text, nullable=False, default="")
    script = Column(Text, nullable=False, default="")

    # Artifacts: local staging paths and published URLs
    audio_path = Column(String, nullable=False, default="")
    audio_url = Column(String, nullable=False, default="")
    generated_code_path = Column(String, nullable=False, default="")
    silent_video_path = Column(String, nullable=False, default="")
    video_path = Column(String, nullable=False, default="")
    video_url = Column(String, nullable=False, default="")

    error_message = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
