"""
Harvester API Server

FastAPI server exposing the harvester's command channel over HTTP, plus a
server-sent-events stream of status updates. The crawl runs on the same
event loop as the request handlers, so commands and the crawl never race.

Usage:
    python -m uvicorn api_server:app --host 0.0.0.0 --port 8080

Environment variables:
    HARVEST_PROFILE     - Optional profile YAML file
    HARVEST_OUTPUT_DIR  - Output directory override
    HARVEST_STATE_FILE  - State blob override
"""

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from command_channel import CommandChannel
from orchestrator import Orchestrator
from profile_loader import HarvestProfile, load_profile

logger = logging.getLogger(__name__)

# --- Configuration ---

PROFILE_PATH = os.environ.get("HARVEST_PROFILE")
OUTPUT_DIR = os.environ.get("HARVEST_OUTPUT_DIR")
STATE_FILE = os.environ.get("HARVEST_STATE_FILE")
EVENT_QUEUE_SIZE = 100


def build_orchestrator() -> Orchestrator:
    profile = load_profile(PROFILE_PATH) if PROFILE_PATH else HarvestProfile()
    orchestrator = Orchestrator.from_profile(profile, output_dir=OUTPUT_DIR, state_file=STATE_FILE)
    if profile.country_code:
        orchestrator.update_country(profile.country_code, profile.country_label)
    return orchestrator


@asynccontextmanager
async def lifespan(app):
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator()
    app.state.channel = CommandChannel(app.state.orchestrator)
    yield
    await app.state.orchestrator.close()


app = FastAPI(
    title="Nomenclature Harvester API",
    description="Command and status API for the resumable nomenclature harvester",
    version="1.0.0",
    lifespan=lifespan,
)


# --- Request models ---


class CommandRequest(BaseModel):
    type: str
    options: dict[str, Any] = Field(default_factory=dict)


class CountryRequest(BaseModel):
    country_code: str = Field(min_length=1)
    label: Optional[str] = None


class StartRequest(BaseModel):
    section_key: Optional[str] = None  # a section key, "__all__", or None to keep the selection
    restart: bool = False


# --- Endpoints ---


def _channel(request: Request) -> CommandChannel:
    return request.app.state.channel


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/api/command")
async def command(req: CommandRequest, request: Request):
    """Generic command channel: {type, options} in, {ok, ...} out."""
    return await _channel(request).dispatch(req.type, req.options)


@app.get("/api/status")
async def get_status(request: Request):
    return await _channel(request).dispatch("getStatus")


@app.get("/api/countries")
async def get_countries(request: Request):
    return await _channel(request).dispatch("getCountries")


@app.get("/api/sections")
async def get_sections(request: Request, refresh: bool = False):
    return await _channel(request).dispatch("getSections", {"forceRefresh": refresh})


@app.post("/api/country")
async def set_country(req: CountryRequest, request: Request):
    result = await _channel(request).dispatch(
        "setCountry", {"countryCode": req.country_code, "label": req.label}
    )
    if not result["ok"]:
        raise HTTPException(status_code=422, detail=result["error"])
    return result


@app.post("/api/start")
async def start(req: StartRequest, request: Request):
    """Start a fresh pass as a background task."""
    return await _channel(request).dispatch(
        "start", {"sectionKey": req.section_key, "restart": req.restart}
    )


@app.post("/api/resume")
async def resume(request: Request):
    return await _channel(request).dispatch("resume")


@app.post("/api/clear")
async def clear(request: Request):
    return await _channel(request).dispatch("clear")


@app.get("/api/events")
async def events(request: Request):
    """Stream status pushes as SSE, starting with the current status."""
    orchestrator: Orchestrator = request.app.state.orchestrator
    queue: asyncio.Queue = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)

    def on_status(payload):
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(payload)

    async def event_generator():
        unsubscribe = orchestrator.subscribe(on_status)
        try:
            yield f"data: {json.dumps(orchestrator.status())}\n\n"
            while True:
                payload = await queue.get()
                yield f"data: {json.dumps(payload)}\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("HARVEST_API_PORT", "8080"))
    uvicorn.run(app, host="0.0.0.0", port=port)
