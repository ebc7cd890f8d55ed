"""Reminder API - message, push and diagnostics endpoints.

Run with: uvicorn api.main:app --port 8110
"""

from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request

from logger import logger
from posture.engine import MessageReceived
from posture.runtime import ReminderRuntime, create_runtime
from utils import sanitize_for_log


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reminder runtime (scheduler + alarm rebuild) with the app."""
    runtime = getattr(app.state, "runtime", None) or create_runtime()
    app.state.runtime = runtime
    await runtime.start()

    yield

    runtime.stop()


app = FastAPI(
    title="Standing Desk Reminder API",
    description="Schedules sit/stand reminders and receives Web Push",
    version="1.0.0",
    lifespan=lifespan
)


def get_runtime(request: Request) -> ReminderRuntime:
    return request.app.state.runtime


# ============================================================
# Health Check
# ============================================================

@app.get("/")
async def root(runtime: ReminderRuntime = Depends(get_runtime)):
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Standing Desk Reminder API",
        "timestamp": runtime.clock().isoformat()
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/alarms")
async def list_alarms(runtime: ReminderRuntime = Depends(get_runtime)):
    """Currently registered alarms and their next run times."""
    return {"alarms": runtime.alarms()}


# ============================================================
# UI messages
# ============================================================

@app.post("/messages")
async def handle_message(
    request: Request,
    background_tasks: BackgroundTasks,
    runtime: ReminderRuntime = Depends(get_runtime)
):
    """Answer a UI request.

    Side effects (replanning, test alarms, notifications) run after the
    response is sent, so a success answer only means the request was
    accepted.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    try:
        outcome = await runtime.evaluate(MessageReceived(payload))
    except Exception as e:
        logger.error(f"Failed to read configuration for message: {e}")
        raise HTTPException(status_code=503, detail="Configuration store unavailable")

    if outcome.writes or outcome.effects:
        background_tasks.add_task(runtime.apply, outcome)
    return outcome.response


# ============================================================
# Web Push
# ============================================================

@app.post("/push/{token}")
async def receive_push(
    token: str,
    request: Request,
    background_tasks: BackgroundTasks,
    runtime: ReminderRuntime = Depends(get_runtime)
):
    """Push delivery endpoint registered with the push backend."""
    if not await runtime.push_manager.verify_token(token):
        raise HTTPException(status_code=404, detail="Unknown subscription")

    data = await request.body()
    logger.info(f"Push delivered ({len(data)} bytes) at {runtime.clock().strftime('%H:%M:%S')}")
    logger.debug(f"Push payload: {sanitize_for_log(data)}")
    background_tasks.add_task(runtime.receive_push, data or None)
    return {"success": True}
