"""
External toolchain: process execution, renderer output lookup, Manim and FFmpeg.
"""

import os
import re
import shlex
import subprocess
import logging
from dataclasses import dataclass
from typing import List, Optional

import ffmpeg

from config import FFMPEG_CMD, MANIM_CMD, MANIM_QUALITY, RENDER_TIMEOUT
from exceptions import ArtifactNotFound, ProcessFailure

# Commands such as "python -m manim" or "/venv/bin/python3 -m manim" are split
# into tokens; anything else is a single executable path, spaces included.
MODULE_PREFIX = re.compile(r"^\S*python[\d.]*(?:\.exe)?\s+-m\s+\S+", re.IGNORECASE)


@dataclass
class ProcessResult:
    stdout: str
    stderr: str
    exit_code: int


def build_command(command: str) -> List[str]:
    if MODULE_PREFIX.match(command.strip()):
        return shlex.split(command)
    return [command]


def format_command(argv: List[str]) -> str:
    return " ".join(shlex.quote(part) for part in argv)


class ProcessRunner:
    """Runs an external executable and captures its output."""

    def run(self, command: str, args: List[str], cwd: Optional[str] = None,
            timeout: Optional[int] = None) -> ProcessResult:
        argv = build_command(command) + [str(arg) for arg in args]
        logging.info(f"⚙️ Running: {format_command(argv)}")

        try:
            completed = subprocess.run(
                argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout or None,
                env=os.environ.copy(),
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessFailure(
                f"{argv[0]} timed out after {timeout} seconds",
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr),
            ) from e
        except OSError as e:
            # Missing or non-executable binary, or a missing working directory
            raise ProcessFailure(f"Could not start {argv[0]}: {e.strerror or e}", stderr=str(e)) from e

        result = ProcessResult(completed.stdout or "", completed.stderr or "", completed.returncode)
        if result.exit_code != 0:
            logging.error(f"❌ {argv[0]} exited with {result.exit_code}. Stderr:\n{result.stderr.strip()}")
            raise ProcessFailure(
                f"{argv[0]} exited with code {result.exit_code}",
                stdout=result.stdout,
                stderr=result.stderr,
                exit_code=result.exit_code,
            )
        return result


def _as_text(output) -> str:
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output or ""


def find_file(root_dir: str, target_name: str) -> Optional[str]:
    """
    Manim nests its output under media/videos/<script>/<quality>/, which
    depends on the Manim version, so the whole tree is searched by name.
    Unreadable directories are skipped.
    """
    for root, _, files in os.walk(root_dir):
        if target_name in files:
            candidate = os.path.join(root, target_name)
            if os.path.isfile(candidate):
                return candidate
    return None


class ManimRenderer:
    """Renders a staged scene file into a silent video."""

    def __init__(self, runner: ProcessRunner = None, command: str = MANIM_CMD,
                 quality: str = MANIM_QUALITY, timeout: int = RENDER_TIMEOUT):
        self.runner = runner or ProcessRunner()
        self.command = command
        self.quality = quality
        self.timeout = timeout

    def render(self, source_path: str, scene_name: str, output_name: str, work_dir: str) -> str:
        self.runner.run(
            self.command,
            [self.quality, "-o", output_name, source_path, scene_name],
            cwd=work_dir,
            timeout=self.timeout,
        )
        logging.info("✅ Manim rendering completed successfully!")

        video_path = find_file(work_dir, output_name)
        if not video_path:
            raise ArtifactNotFound(
                f"Silent video not found after Manim render: expected '{output_name}' under '{work_dir}'."
            )
        return video_path


class Muxer:
    """Combines a silent video with a narration track."""

    def __init__(self, runner: ProcessRunner = None, command: str = FFMPEG_CMD):
        self.runner = runner or ProcessRunner()
        self.command = command

    def build_args(self, video_path: str, audio_path: str, output_path: str) -> List[str]:
        # Video track of the render, audio track of the narration; video is
        # stream-copied and output length is bounded by the shorter input.
        stream = ffmpeg.output(
            ffmpeg.input(video_path).video,
            ffmpeg.input(audio_path).audio,
            output_path,
            **{"c:v": "copy", "c:a": "aac", "shortest": None},
        ).overwrite_output()
        return stream.get_args()

    def mux(self, video_path: str, audio_path: str, output_path: str) -> str:
        self.runner.run(self.command, self.build_args(video_path, audio_path, output_path))
        if not os.path.isfile(output_path):
            raise ArtifactNotFound(f"FFmpeg reported success but '{output_path}' does not exist.")
        logging.info(f"🎞️ Final video created: {output_path}")
        return output_path
