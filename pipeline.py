"""
Stage pipeline: Refine -> Script -> Audio -> Render -> Mux -> Publish.

Each stage takes the previous stage's artifact as an explicit argument and
records its result on the job. Stages never retry; a failure marks the job
`failed` (except Refine, which leaves the job as it was) and propagates.
"""

import os
import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass

from audio import pcm_to_wav
from config import (
    AUDIO_DIR,
    CODES_DIR,
    VIDEOS_DIR,
    GEMINI_API_KEY_MANIM,
    REFINE_SYSTEM_PROMPT,
    SCRIPT_SYSTEM_PROMPT,
    MANIM_CODE_PROMPT,
)
from exceptions import InvalidTransition, MissingArtifact
from runner import ManimRenderer, Muxer
from sanitizer import detect_scene_name, sanitize, strip_code_fences
from services import GeminiTTSClient, make_text_generator
from storage import BlobStorage, make_storage
from tracker import JobStatus, JobTracker


@dataclass
class AudioArtifact:
    path: str
    url: str


@dataclass
class RenderArtifact:
    code_path: str
    silent_video_path: str


@dataclass
class VideoArtifact:
    url: str
    path: str
    code_path: str


def timestamp_id() -> str:
    """Microsecond timestamp used to name staged files."""
    return str(time.time_ns() // 1000)


def describe_failure(stage: str, error: Exception) -> str:
    message = f"{stage} failed: {error}"
    details = getattr(error, "details", "") or ""
    last_line = details.strip().splitlines()[-1] if details.strip() else ""
    if last_line and last_line not in message:
        message = f"{message} ({last_line})"
    return message


def _require_file(path: str, what: str):
    if not path:
        raise MissingArtifact(f"{what} is required.")
    if not os.path.isfile(path):
        raise MissingArtifact(f"{what} not found: {path}")


class VideoPipeline:
    """Runs the generation stages for one job id at a time."""

    def __init__(self, tracker: JobTracker, text_generator, tts, storage: BlobStorage,
                 code_generator=None, renderer: ManimRenderer = None, muxer: Muxer = None,
                 audio_dir: str = AUDIO_DIR, codes_dir: str = CODES_DIR, videos_dir: str = VIDEOS_DIR):
        self.tracker = tracker
        self.text_generator = text_generator
        self.code_generator = code_generator or text_generator
        self.tts = tts
        self.storage = storage
        self.renderer = renderer or ManimRenderer()
        self.muxer = muxer or Muxer()
        self.audio_dir = audio_dir
        self.codes_dir = codes_dir
        self.videos_dir = videos_dir

    @contextmanager
    def _stage(self, job_id: str, name: str, mark_failed: bool = True):
        """Yields a dict for artifacts to keep on the job if the stage fails."""
        partial = {}
        logging.info(f"▶️ Job {job_id}: {name} started")
        try:
            yield partial
        except InvalidTransition:
            raise
        except Exception as e:
            logging.error(f"❌ Job {job_id}: {name} failed: {e}")
            if mark_failed:
                self.tracker.fail(job_id, describe_failure(name, e), **partial)
            raise
        logging.info(f"✅ Job {job_id}: {name} finished")

    # --- Fast stages ---

    def refine(self, job_id: str, prompt: str) -> str:
        if not prompt or not prompt.strip():
            raise MissingArtifact("Prompt is required.")
        self.tracker.ensure_runnable(job_id, JobStatus.REFINING)

        with self._stage(job_id, "Refine", mark_failed=False):
            refined = self.text_generator.generate_text(
                REFINE_SYSTEM_PROMPT, f"User Prompt: {prompt}\n\nRefined Prompt:", what="prompt"
            )
        self.tracker.upsert(job_id, status=JobStatus.REFINING, raw_prompt=prompt, refined_prompt=refined)
        return refined

    def write_script(self, job_id: str, refined_prompt: str) -> str:
        if not refined_prompt or not refined_prompt.strip():
            raise MissingArtifact("A prompt is required.")
        self.tracker.ensure_runnable(job_id, JobStatus.SCRIPT_GENERATING)

        with self._stage(job_id, "Script"):
            script = self.text_generator.generate_text(SCRIPT_SYSTEM_PROMPT, refined_prompt, what="script")
            self.tracker.upsert(job_id, status=JobStatus.SCRIPT_GENERATING, script=script)
        return script

    def generate_audio(self, job_id: str, script: str) -> AudioArtifact:
        if not script or not script.strip():
            raise MissingArtifact("A script is required.")
        job = self.tracker.ensure_runnable(job_id, JobStatus.SCRIPT_GENERATING)
        if job and job.audio_path and os.path.isfile(job.audio_path):
            logging.info(f"♻️ Job {job_id}: reusing audio {job.audio_path}")
            return AudioArtifact(job.audio_path, job.audio_url)

        with self._stage(job_id, "Audio"):
            generated = self.tts.generate_audio(script)
            os.makedirs(self.audio_dir, exist_ok=True)
            file_name = f"audio_{timestamp_id()}.wav"
            local_path = os.path.join(self.audio_dir, file_name)
            with open(local_path, "wb") as f:
                f.write(pcm_to_wav(generated.pcm, generated.sample_rate))
            logging.info(f"🔊 Audio file saved locally to {local_path}")

            url = self.storage.upload(local_path, f"audio/{file_name}", True)
            self.tracker.upsert(job_id, status=JobStatus.SCRIPT_GENERATING, audio_path=local_path, audio_url=url)
        return AudioArtifact(local_path, url)

    # --- Slow stages ---

    def render(self, job_id: str, script: str) -> RenderArtifact:
        if not script or not script.strip():
            raise MissingArtifact("A script is required.")
        self.tracker.ensure_runnable(job_id, JobStatus.VIDEO_GENERATING)

        with self._stage(job_id, "Render") as partial:
            raw_code = self.code_generator.generate_text(MANIM_CODE_PROMPT, script, what="Manim code")
            code = sanitize(strip_code_fences(raw_code))
            scene_name = detect_scene_name(code)

            render_id = timestamp_id()
            os.makedirs(self.codes_dir, exist_ok=True)
            os.makedirs(self.videos_dir, exist_ok=True)
            code_path = os.path.join(self.codes_dir, f"scene_{render_id}.py")
            with open(code_path, "w", encoding="utf-8") as f:
                f.write(code)
            partial["generated_code_path"] = code_path
            logging.info(f"💾 Saved Manim code to {code_path}")

            silent_path = self.renderer.render(code_path, scene_name, f"silent_{render_id}.mp4", self.videos_dir)
            self.tracker.upsert(
                job_id,
                status=JobStatus.VIDEO_GENERATING,
                generated_code_path=code_path,
                silent_video_path=silent_path,
            )
        return RenderArtifact(code_path, silent_path)

    def mux(self, job_id: str, silent_video_path: str, audio_path: str) -> str:
        _require_file(silent_video_path, "Silent video")
        _require_file(audio_path, "Audio file")
        self.tracker.ensure_runnable(job_id, JobStatus.VIDEO_GENERATING)

        with self._stage(job_id, "Mux"):
            output_path = os.path.join(self.videos_dir, f"final_{timestamp_id()}.mp4")
            self.muxer.mux(silent_video_path, audio_path, output_path)
            self.tracker.upsert(job_id, status=JobStatus.VIDEO_GENERATING, video_path=output_path)
        return output_path

    def publish(self, job_id: str, final_video_path: str) -> str:
        _require_file(final_video_path, "Final video")
        self.tracker.ensure_runnable(job_id, JobStatus.COMPLETED)

        with self._stage(job_id, "Publish"):
            dest_key = f"videos/{os.path.basename(final_video_path)}"
            url = self.storage.upload(final_video_path, dest_key, True)
            self.tracker.upsert(job_id, status=JobStatus.COMPLETED, video_url=url)
        return url

    def _require_own_audio(self, job, audio_path: str):
        """The audio must be a staged file, and the one recorded for this job if any."""
        _require_file(audio_path, "Audio file")
        resolved = os.path.realpath(audio_path)
        if not resolved.startswith(os.path.realpath(self.audio_dir) + os.sep):
            raise MissingArtifact(f"Audio file is not a staged audio artifact: {audio_path}")
        if job and job.audio_path and resolved != os.path.realpath(job.audio_path):
            raise MissingArtifact(
                f"Audio file does not match the audio produced for job {job.id}.",
                details=job.audio_path,
            )

    def generate_video(self, job_id: str, script: str, audio_path: str) -> VideoArtifact:
        """Render, mux and publish, resuming after the last stage whose artifact is on disk."""
        if not script or not script.strip():
            raise MissingArtifact("A script is required.")

        job = self.tracker.get(job_id)
        self._require_own_audio(job, audio_path)
        if job and job.status == JobStatus.COMPLETED and job.video_url:
            return VideoArtifact(job.video_url, job.video_path, job.generated_code_path)

        self.tracker.ensure_runnable(job_id, JobStatus.VIDEO_GENERATING)
        job = self.tracker.upsert(job_id, status=JobStatus.VIDEO_GENERATING)
        code_path, silent_path, final_path = job.generated_code_path, job.silent_video_path, job.video_path

        if silent_path and os.path.isfile(silent_path):
            logging.info(f"♻️ Job {job_id}: reusing silent video {silent_path}")
        else:
            rendered = self.render(job_id, script)
            code_path, silent_path = rendered.code_path, rendered.silent_video_path

        if final_path and os.path.isfile(final_path):
            logging.info(f"♻️ Job {job_id}: reusing final video {final_path}")
        else:
            final_path = self.mux(job_id, silent_path, audio_path)

        url = self.publish(job_id, final_path)
        return VideoArtifact(url, final_path, code_path)


def build_pipeline(db) -> VideoPipeline:
    """Wires the pipeline with the configured model clients and storage."""
    return VideoPipeline(
        tracker=JobTracker(db),
        text_generator=make_text_generator(),
        code_generator=make_text_generator(api_key=GEMINI_API_KEY_MANIM),
        tts=GeminiTTSClient(),
        storage=make_storage(),
    )
