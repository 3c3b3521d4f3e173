"""
Pydantic models for data validation in the video generator API.
"""

from datetime import datetime
from pydantic import BaseModel
from typing import Optional


class PromptRequest(BaseModel):
    """Request model for the prompt refinement and script stages."""
    job_id: str
    prompt: str


class RefineResponse(BaseModel):
    job_id: str
    refined_prompt: str


class ScriptResponse(BaseModel):
    job_id: str
    script: str


class AudioRequest(BaseModel):
    job_id: str
    script: str


class AudioResponse(BaseModel):
    job_id: str
    audio_url: str
    local_audio_path: str


class VideoRequest(BaseModel):
    """The audio path returned by the audio stage is required input."""
    job_id: str
    script: str
    local_audio_path: str


class VideoResponse(BaseModel):
    job_id: str
    video_url: str
    code_path: str


class JobResponse(BaseModel):
    """Response when submitting a background generation job."""
    job_id: str
    status: str


class SessionResponse(BaseModel):
    """Full job record, for polling and diagnostics."""
    job_id: str
    status: str
    raw_prompt: str = ""
    refined_prompt: str = ""
    script: str = ""
    audio_path: str = ""
    audio_url: str = ""
    generated_code_path: str = ""
    silent_video_path: str = ""
    video_path: str = ""
    video_url: str = ""
    error_message: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job) -> "SessionResponse":
        return cls(
            job_id=job.id,
            status=job.status,
            raw_prompt=job.raw_prompt or "",
            refined_prompt=job.refined_prompt or "",
            script=job.script or "",
            audio_path=job.audio_path or "",
            audio_url=job.audio_url or "",
            generated_code_path=job.generated_code_path or "",
            silent_video_path=job.silent_video_path or "",
            video_path=job.video_path or "",
            video_url=job.video_url or "",
            error_message=job.error_message or "",
            created_at=job.created_at,
            updated_at=job.updated_at,
        )
