"""
Router for the generation stages.
One endpoint per stage, plus session inspection and restart.
"""

import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from database import get_db
from exceptions import (
    InvalidTransition,
    JobNotFound,
    MissingArtifact,
    PipelineError,
    UploadFailure,
    UpstreamGenerationFailure,
)
from pipeline import VideoPipeline, build_pipeline
from schemas import (
    PromptRequest,
    RefineResponse,
    ScriptResponse,
    AudioRequest,
    AudioResponse,
    VideoRequest,
    VideoResponse,
    JobResponse,
    SessionResponse,
)
from tasks import generate_video_task
from tracker import JobStatus, JobTracker


# Create the router
router = APIRouter(prefix="/api", tags=["generation"])


def get_pipeline(db: Session = Depends(get_db)) -> VideoPipeline:
    return build_pipeline(db)


def get_tracker(db: Session = Depends(get_db)) -> JobTracker:
    return JobTracker(db)


ERROR_STATUS_CODES = (
    (MissingArtifact, 400),
    (JobNotFound, 404),
    (InvalidTransition, 409),
    (UpstreamGenerationFailure, 502),
    (UploadFailure, 502),
)


def status_code_for(error: PipelineError) -> int:
    """Process, artifact and configuration failures are server errors."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


def to_http_error(error: PipelineError, what: str) -> HTTPException:
    return HTTPException(
        status_code=status_code_for(error),
        detail={"error": f"Failed to {what}", "details": error.message, "diagnostics": error.details},
    )


@router.post("/improve-prompt", response_model=RefineResponse)
def improve_prompt(request: PromptRequest, pipeline: VideoPipeline = Depends(get_pipeline)):
    try:
        refined = pipeline.refine(request.job_id, request.prompt)
    except PipelineError as e:
        raise to_http_error(e, "refine prompt")
    return RefineResponse(job_id=request.job_id, refined_prompt=refined)


@router.post("/generate-script", response_model=ScriptResponse)
def generate_script(request: PromptRequest, pipeline: VideoPipeline = Depends(get_pipeline)):
    try:
        script = pipeline.write_script(request.job_id, request.prompt)
    except PipelineError as e:
        raise to_http_error(e, "generate script")
    return ScriptResponse(job_id=request.job_id, script=script)


@router.post("/generate-audio", response_model=AudioResponse)
def generate_audio(request: AudioRequest, pipeline: VideoPipeline = Depends(get_pipeline)):
    """Fast stage: the client can start streaming the narration right away."""
    try:
        audio = pipeline.generate_audio(request.job_id, request.script)
    except PipelineError as e:
        raise to_http_error(e, "generate audio")
    return AudioResponse(job_id=request.job_id, audio_url=audio.url, local_audio_path=audio.path)


@router.post("/generate-video", response_model=VideoResponse)
def generate_video(request: VideoRequest, pipeline: VideoPipeline = Depends(get_pipeline)):
    """Slow stage: render, mux and publish. Responds when the video is published."""
    try:
        video = pipeline.generate_video(request.job_id, request.script, request.local_audio_path)
    except PipelineError as e:
        raise to_http_error(e, "generate video")
    return VideoResponse(job_id=request.job_id, video_url=video.url, code_path=video.code_path)


@router.post("/generate-video/async", response_model=JobResponse)
def generate_video_async(request: VideoRequest, tracker: JobTracker = Depends(get_tracker)):
    """
    Hands the slow stage to a Celery worker and returns immediately.
    Poll /api/sessions/{job_id} for progress.
    """
    try:
        tracker.ensure_runnable(request.job_id, JobStatus.VIDEO_GENERATING)
    except PipelineError as e:
        raise to_http_error(e, "start video generation")

    try:
        generate_video_task.delay(request.job_id, request.script, request.local_audio_path)
    except Exception as e:
        logging.error(f"Failed to submit task to Celery: {e}")
        raise HTTPException(status_code=503, detail="Failed to start the video generation job.")

    logging.info(f"✨ Job {request.job_id} submitted for video generation")
    job = tracker.get(request.job_id)
    return JobResponse(job_id=request.job_id, status=job.status if job else JobStatus.CREATED)


@router.get("/sessions/{job_id}", response_model=SessionResponse)
def get_session(job_id: str, tracker: JobTracker = Depends(get_tracker)):
    job = tracker.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found.")
    return SessionResponse.from_job(job)


@router.post("/sessions/{job_id}/restart", response_model=SessionResponse)
def restart_session(job_id: str, tracker: JobTracker = Depends(get_tracker)):
    try:
        job = tracker.restart(job_id)
    except PipelineError as e:
        raise to_http_error(e, "restart job")
    return SessionResponse.from_job(job)
