"""
Configuration file for the narrated animation video generator.
Contains all global constants, staging directories and prompt templates.
"""

import os

# --- Constants ---
PROJECT_ROOT = os.getcwd()
MEDIA_DIR = os.getenv("MEDIA_DIR", os.path.join(PROJECT_ROOT, "media"))
AUDIO_DIR = os.path.join(MEDIA_DIR, "audio")
CODES_DIR = os.path.join(MEDIA_DIR, "codes")
VIDEOS_DIR = os.path.join(MEDIA_DIR, "videos")
PUBLISHED_DIR = os.path.join(MEDIA_DIR, "published")

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(PROJECT_ROOT, 'jobs.db')}")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")

# Generative models
TEXT_PROVIDER = os.getenv("TEXT_PROVIDER", "gemini")
GEMINI_API_URL = os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta/models")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_API_KEY_TTS = os.getenv("GEMINI_API_KEY_TTS", GEMINI_API_KEY)
GEMINI_API_KEY_MANIM = os.getenv("GEMINI_API_KEY_MANIM", GEMINI_API_KEY)
GEMINI_TEXT_MODEL = os.getenv("GEMINI_TEXT_MODEL", "gemini-2.5-flash")
GEMINI_TTS_MODEL = os.getenv("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts")
TTS_VOICE = os.getenv("TTS_VOICE", "Kore")
DEFAULT_SAMPLE_RATE = 24000
OLLAMA_API_URL = os.getenv("OLLAMA_API_URL", "http://localhost:11434/api/chat")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "codellama:7b")
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "180"))

# External toolchain. MANIM_CMD may be a path or e.g. "python -m manim".
MANIM_CMD = os.getenv("MANIM_CMD", "manim")
FFMPEG_CMD = os.getenv("FFMPEG_CMD", "ffmpeg")
MANIM_QUALITY = os.getenv("MANIM_QUALITY", "-qm")
SCENE_NAME = "ManimScene"
# Seconds; 0 waits for the renderer indefinitely.
RENDER_TIMEOUT = int(os.getenv("RENDER_TIMEOUT", "900"))

# Blob storage
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
GCS_BUCKET = os.getenv("GCS_BUCKET", "")
GCS_PROJECT = os.getenv("GCS_PROJECT") or None
GCS_KEY_FILE = os.getenv("GCS_KEY_FILE", os.path.join(PROJECT_ROOT, ".gcp", "service-account-key.json"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
CLEANUP_MAX_AGE_DAYS = int(os.getenv("CLEANUP_MAX_AGE_DAYS", "30"))

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")


def ensure_directories():
    """Create the local staging directories if they don't exist."""
    for directory in (MEDIA_DIR, AUDIO_DIR, CODES_DIR, VIDEOS_DIR, PUBLISHED_DIR):
        os.makedirs(directory, exist_ok=True)


# --- Prompt Engineering Section ---

REFINE_SYSTEM_PROMPT = """You are an expert prompt engineer specializing in educational video content creation. Your task is to refine and enhance user prompts to create comprehensive, detailed prompts that will be used to generate high-quality educational video scripts.

When refining a prompt, you should:
1. Expand on the topic to make it more comprehensive
2. Add specific details about what should be covered
3. Suggest visual elements that would enhance understanding
4. Ensure the prompt is clear and actionable for script generation
5. Maintain the original intent while making it more detailed

Return only the refined prompt without any additional commentary or explanation, in under 250 words."""

SCRIPT_SYSTEM_PROMPT = """You are an AI video scriptwriter. Your task is to take a detailed user prompt and write a full production script (visuals and speech) for a video that is UNDER 2 MINUTES.
You MUST follow the format of the example below exactly.

--- EXAMPLE START ---
User prompt = "Develop a comprehensive video script explaining the Binomial Theorem. Begin by defining the theorem and its purpose. Detail Pascal's Triangle and its relationship to the coefficients."

--scene1--
Title: What is the Binomial Theorem?
Visuals = "Clean animation of (x+y)^n appearing on screen. The 'n' clicks from 2, to 3, to 10."
--speech--
0:05 Hello and welcome! Today we're exploring a powerful tool in algebra: the Binomial Theorem.
0:10 Ever wondered how to expand an expression like (x + y) to the power of 10 without endless multiplication?

--scene2--
Title: The Formula & Pascal's Triangle
Visuals = "An animated Pascal's Triangle builds itself, row by row. Highlight the n=3 row [1, 3, 3, 1]."
--speech--
0:25 The theorem uses binomial coefficients, which you might know from Pascal's Triangle.
0:32 For example, to expand (x+y) to the power of 3, we look at the row [1, 3, 3, 1].
--- EXAMPLE END ---

You will now be given a new user prompt. Generate the script in the exact same format with Manim-compatible visuals. DO NOT add any extra commentary.
The script must be clear, easy to follow, and strictly under 2 minutes."""

MANIM_CODE_PROMPT = f"""You are an expert Manim developer. Write a *complete, single* Python script for Manim Community Edition that animates the user's script.

CRITICAL RULES - BREAKING THESE WILL CAUSE RENDERING FAILURE:

1.  Your response MUST BE ONLY valid Python code. No explanations or markdown.
2.  Import everything with `from manim import *`.
3.  Define a single scene class named `{SCENE_NAME}` inheriting from `Scene`, with a `construct(self)` method.
4.  Use `self.play(...)` for animations and `self.wait(...)` for pauses.

5.  WHITELIST - Use ONLY these elements:
  - Text: `Text(...)` for ALL text, titles, labels and formulas (use Unicode: ∫, Σ, ≤, ≥, θ, π, √, ×, ÷)
  - Shapes: `Circle()`, `Square()`, `Rectangle()`, `Line()`, `Dot()` ONLY
  - Grouping: `VGroup(...)`
  - Colors: `BLUE`, `RED`, `GREEN`, `YELLOW`, `PURPLE`, `ORANGE`, `PINK`, `WHITE`, `BLACK`, `GREY` (and variants like BLUE_A, RED_B)
  - Animations: `Write()`, `FadeIn()`, `FadeOut()`, `Create()`, `Transform()`, `ReplacementTransform()`, `Uncreate()`, `GrowFromCenter()`, `ShrinkToCenter()`
  - Positioning: `.to_edge()`, `.shift()`, `.next_to()`, `.move_to()`, `.set_color()`, `.scale()`, `.rotate()`, `.align_to()`
  - Queries: `.get_center()`, `.get_top()`, `.get_bottom()`, `.get_left()`, `.get_right()`

6.  BLACKLIST - NEVER use these (they will be auto-removed):
  - LaTeX: `Tex`, `MathTex`, `TexTemplate`
  - Graphing: `Axes`, `NumberLine`, `NumberPlane`, `get_graph`, `plot`
  - Arrows: `Arrow`, `DoubleArrow`, `CurvedArrow`, `Vector`
  - Complex shapes: `Polygon`, `Triangle`, `Ellipse`, `Arc`
  - Advanced animations: `Flash`, `Indicate`, `ApplyMethod`, `ShowCreation`
  - Dict unpacking: `**config`, `**kwargs`
  - Hallucinated methods: `wait_until()`, `pause()`

7.  Base your animation on the "Visuals" and "Speech" cues of the script."""

TTS_INSTRUCTION = "Read the following script in a clear, informative, and friendly tone: "
