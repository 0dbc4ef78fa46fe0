import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

import config
from free_time import format_time_slot, suggest_time_slot
from models import FindTimeRequest, ParseRequest
from pipeline import parse_transcript
from resolver import CommandResolver

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    logger.info("Command parser started (LLM %s, model %s)",
                "enabled" if resolver.llm_enabled else "disabled", resolver.model)
    yield
    # Shutdown
    if resolver.client is not None:
        await resolver.client.close()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

resolver = CommandResolver()


@app.post("/ai/parse")
async def parse(parse_request: ParseRequest) -> dict:
    """Parse a voice transcript into reconciled commands."""
    transcript = parse_request.transcript.strip()
    if not transcript:
        raise HTTPException(status_code=400, detail="Transcript is required and must be a non-empty string")

    # Attach the client timezone so weekdays and "tomorrow" resolve in the user's zone
    if parse_request.time_zone:
        transcript = f"{transcript} [UserTimeZone:{parse_request.time_zone}]"
    elif parse_request.offset_minutes is not None:
        transcript = f"{transcript} [UserOffsetMinutes:{parse_request.offset_minutes}]"

    result = await parse_transcript(
        transcript,
        resolver,
        last_scheduled_id=parse_request.last_scheduled_id,
        multiple_commands=parse_request.multiple_commands,
        batch_mode=config.LLM_BATCH_MODE,
    )
    return {
        "success": True,
        "data": [command.to_wire() for command in result.commands],
        "lastScheduledId": result.last_scheduled_id,
        "updates": [update.model_dump(by_alias=True, exclude_none=True) for update in result.updates],
        "timestamp": datetime.now().isoformat(),
    }


@app.get("/ai/status")
def status() -> dict:
    """Report whether LLM parsing is available."""
    if not resolver.use_llm:
        return {
            "available": False,
            "model": resolver.model,
            "status": "disabled",
            "message": "LLM parsing is disabled, using the offline parser",
        }
    available = resolver.llm_enabled
    return {
        "available": available,
        "model": resolver.model,
        "status": "ready" if available else "not_configured",
        "message": "AI parsing service is ready" if available else "Anthropic API key not configured",
    }


@app.post("/ai/find-time")
def find_time(find_request: FindTimeRequest) -> dict:
    """Suggest a free slot among the supplied calendar events."""
    slot = suggest_time_slot(find_request.text, find_request.events)
    if slot is None:
        return {"success": False, "slot": None, "message": "No suitable free time slots found"}
    return {
        "success": True,
        "slot": {
            "start": slot.start.isoformat(),
            "end": slot.end.isoformat(),
            "duration": slot.duration,
        },
        "message": f"Suggested: {format_time_slot(slot)}",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
