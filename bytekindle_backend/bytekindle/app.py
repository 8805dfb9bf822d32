from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.middleware.cors import CORSMiddleware
import logging
from typing import Optional

# Ensure .env is loaded before importing modules that initialize API clients
from .settings import has_all_keys, ALLOWED_ORIGINS, OFFLINE, STORY_TTL_SECONDS
from .kv_storage import KVError, KVStorage, build_store
from .llm import OpenAIStoryGenerator
from .replicate_client import ReplicateImageGenerator
from .session import SessionController, view_url
from .stubs import StubImageGenerator, StubStoryGenerator
from .pages import render_setup, render_viewer

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="ByteKindle Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

_controller: Optional[SessionController] = None

def get_controller() -> SessionController:
    global _controller
    if _controller is None:
        if OFFLINE:
            logger.info("BYTEKINDLE_OFFLINE=1 - serving stub stories and images")
            story_generator, image_generator = StubStoryGenerator(), StubImageGenerator()
        else:
            story_generator, image_generator = OpenAIStoryGenerator(), ReplicateImageGenerator()
        _controller = SessionController(build_store(), story_generator, image_generator, STORY_TTL_SECONDS)
    return _controller

@app.exception_handler(KVError)
async def kv_unavailable(request, exc: KVError):
    # Nothing is generated or written when the story could not be read
    return JSONResponse(status_code=503, content={"detail": "story storage unavailable, try again"})

def _to_setup() -> RedirectResponse:
    return RedirectResponse("/", status_code=303)

@app.get("/health")
def health(controller: SessionController = Depends(get_controller)):
    keys_ok = has_all_keys()
    store = "kv" if isinstance(controller.store, KVStorage) else "memory"
    logger.info(f"Health check: API keys present = {keys_ok}, store = {store}")
    return {"ok": True, "has_keys": keys_ok, "store": store}

@app.get("/", response_class=HTMLResponse)
def setup():
    return HTMLResponse(render_setup())

@app.get("/start")
async def start(background_tasks: BackgroundTasks, hero: str = "", dob: str = "", controller: SessionController = Depends(get_controller)):
    if not hero.strip():
        return _to_setup()
    target = await controller.start(hero, dob.strip() or None)
    background_tasks.add_task(controller.record_started, hero)
    return RedirectResponse(target, status_code=303)

@app.get("/view", response_class=HTMLResponse)
async def view(hero: str = "", controller: SessionController = Depends(get_controller)):
    state = await controller.view(hero)
    if state is None:
        return _to_setup()
    return HTMLResponse(render_viewer(state), headers={"Cache-Control": "no-cache"})

@app.get("/next")
async def next_scene(hero: str = "", controller: SessionController = Depends(get_controller)):
    result = await controller.advance(hero)
    if result is None:
        return _to_setup()
    return RedirectResponse(view_url(hero), status_code=303)

@app.get("/api/next")
async def api_next(hero: str = "", controller: SessionController = Depends(get_controller)):
    result = await controller.advance(hero)
    if result is None:
        raise HTTPException(404, "no story in progress for this hero")
    return result.model_dump()

@app.get("/api/image.png")
async def api_image(index: int, hero: str = "", controller: SessionController = Depends(get_controller)):
    try:
        image = await controller.image(hero, index)
    except KVError:
        raise
    except Exception as e:
        logger.error(f"Image generation failed for hero {hero!r} scene {index}: {e}")
        raise HTTPException(500, f"AI Generation Error: {e}")
    if image is None:
        raise HTTPException(404, "scene not found")
    # A scene's picture never changes while the story exists
    return Response(
        content=image,
        media_type="image/png",
        headers={"Cache-Control": "private, max-age=86400"}
    )
