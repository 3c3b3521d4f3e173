import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import CORS_ORIGINS, MEDIA_DIR, ensure_directories
from database import Base, engine
from exceptions import PipelineError
from routers.generation import router, status_code_for

# --------------------------------------------------------------------------
# --- Configuration & Setup ---
# --------------------------------------------------------------------------

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_directories()
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Narrated Animation Video Generator",
    description="Turns a short topic into a narrated Manim video, one stage per call.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Staged and locally published artifacts
app.mount("/media", StaticFiles(directory=MEDIA_DIR, check_dir=False), name="media")

app.include_router(router)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    """Errors raised outside route bodies, e.g. while wiring the pipeline."""
    logging.error(f"❌ {type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": {"error": type(exc).__name__, "details": exc.message}},
    )


@app.get("/api/health")
def health():
    return {"status": "ok", "message": "Backend server is running"}
