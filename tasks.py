# tasks.py

from celery import Celery
import logging
import traceback

from config import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, CLEANUP_MAX_AGE_DAYS
from database import SessionLocal
from exceptions import ConfigurationError, PipelineError
from pipeline import build_pipeline
from storage import make_storage
from tracker import JobTracker

celery = Celery('tasks', broker=CELERY_BROKER_URL, backend=CELERY_RESULT_BACKEND)
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


@celery.task
def generate_video_task(job_id: str, script: str, local_audio_path: str):
    """
    Runs render, mux and publish for one job in a worker.
    The job record is the progress channel; clients poll it.
    """
    db = SessionLocal()

    try:
        logging.info(f"📝 Worker received job {job_id}")
        try:
            pipeline = build_pipeline(db)
        except ConfigurationError as e:
            JobTracker(db).fail(job_id, f"Configuration error: {e}")
            raise

        video = pipeline.generate_video(job_id, script, local_audio_path)
        logging.info(f"✅ Worker finished job {job_id}. Video at: {video.url}")
        return {"job_id": job_id, "video_url": video.url, "code_path": video.code_path}

    except PipelineError as e:
        # Stage failures are recorded on the job by the pipeline itself
        logging.error(f"❌ Worker failed job {job_id}. Error: {e}")
        traceback.print_exc()
        return {"job_id": job_id, "error": e.message}
    finally:
        db.close()


@celery.task
def cleanup_storage_task(prefix: str, max_age_days: int = CLEANUP_MAX_AGE_DAYS):
    """Deletes published objects under `prefix` older than `max_age_days`."""
    return make_storage().cleanup(prefix, max_age_days)
