# tests/conftest.py

import os
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add the parent directory to the Python path so we can import the backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import models  # noqa: E402,F401
from database import Base  # noqa: E402
from pipeline import VideoPipeline  # noqa: E402
from services import GeneratedAudio  # noqa: E402
from storage import LocalStorage  # noqa: E402
from tracker import JobTracker  # noqa: E402

SCRIPT = """--scene1--
Title: What is the Binomial Theorem?
Visuals = "(x+y)^n appears on screen."
--speech--
0:05 Hello and welcome! Today we're exploring the Binomial Theorem.
"""

MANIM_CODE = """```python
from manim import *

class ManimScene(Scene):
    def construct(self):
        title = Text("Binomial Theorem", color=BLUE).to_edge(UP)
        self.play(Write(title))
        self.wait(1)
```"""


class FakeTextGenerator:
    """Answers by the `what` argument; an Exception value is raised instead."""

    def __init__(self, **responses):
        self.responses = {
            "prompt": "Explain the binomial theorem with Pascal's triangle.",
            "script": SCRIPT,
            "Manim code": MANIM_CODE,
        }
        self.responses.update({key.replace("_", " "): value for key, value in responses.items()})
        self.calls = []

    def generate_text(self, system_prompt, user_prompt, what="content"):
        self.calls.append((what, user_prompt))
        response = self.responses[what]
        if isinstance(response, Exception):
            raise response
        return response


class FakeTTS:
    def __init__(self, samples=2400, sample_rate=24000, error=None):
        self.samples = samples
        self.sample_rate = sample_rate
        self.error = error
        self.calls = 0

    def generate_audio(self, text):
        self.calls += 1
        if self.error:
            raise self.error
        pcm = b"\x10\x00" * self.samples
        return GeneratedAudio(pcm, self.sample_rate, f"audio/L16;codec=pcm;rate={self.sample_rate}")


class FakeRenderer:
    """Writes the silent video under a nested directory, the way Manim does."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def render(self, source_path, scene_name, output_name, work_dir):
        self.calls.append((source_path, scene_name, output_name, work_dir))
        if self.error:
            raise self.error
        nested = os.path.join(work_dir, "media", "videos", os.path.basename(source_path)[:-3], "720p30")
        os.makedirs(nested, exist_ok=True)
        path = os.path.join(nested, output_name)
        with open(path, "wb") as f:
            f.write(b"silent video")
        return path


class FakeMuxer:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def mux(self, video_path, audio_path, output_path):
        self.calls.append((video_path, audio_path, output_path))
        if self.error:
            raise self.error
        with open(output_path, "wb") as f:
            f.write(b"final video")
        return output_path


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def tracker(db):
    return JobTracker(db)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "published"), "http://testserver/media/published")


@pytest.fixture
def make_pipeline(tracker, storage, tmp_path):
    def factory(text_generator=None, tts=None, renderer=None, muxer=None):
        return VideoPipeline(
            tracker=tracker,
            text_generator=text_generator or FakeTextGenerator(),
            tts=tts or FakeTTS(),
            storage=storage,
            renderer=renderer or FakeRenderer(),
            muxer=muxer or FakeMuxer(),
            audio_dir=str(tmp_path / "audio"),
            codes_dir=str(tmp_path / "codes"),
            videos_dir=str(tmp_path / "videos"),
        )
    return factory


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()
