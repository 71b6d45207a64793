import logging

from fastapi import Depends, FastAPI, HTTPException, Security
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from studystreak import config
from studystreak.database import ensure_profile, get_profile, init_db, record_study_session
from studystreak.models import (
    ActivityGrid,
    CreateUserRequest,
    DailyActivityRecord,
    RecordSessionRequest,
    StreakSnapshot,
    UserProfile,
)
from studystreak.refresh import LiveRefreshController

logger = logging.getLogger(__name__)

app = FastAPI(title="Study Streak")
app.state.controllers = {}

# Basic Auth when BASIC_AUTH_USER and BASIC_AUTH_PASSWORD are set
# auto_error=False so auth is skipped when they are unset (local dev, tests)
_scheme = HTTPBasic(auto_error=False)


def _verify_basic_auth(credentials: HTTPBasicCredentials | None = Security(_scheme)) -> None:
    user = config.BASIC_AUTH_USER
    password = config.BASIC_AUTH_PASSWORD
    if not user or not password:
        return
    if not credentials or credentials.username != user or credentials.password != password:
        raise HTTPException(status_code=401, detail="Invalid credentials", headers={"WWW-Authenticate": "Basic"})


@app.on_event("startup")
def startup():
    config.configure_logging()
    config.validate_config()
    init_db()


@app.on_event("shutdown")
def shutdown():
    controllers = app.state.controllers
    for controller in controllers.values():
        controller.stop()
    controllers.clear()


async def _controller_for(user_id: str) -> LiveRefreshController:
    """Mount a refresh controller for the user on first use."""
    controllers = app.state.controllers
    controller = controllers.get(user_id)
    if controller is not None:
        return controller
    profile = await run_in_threadpool(get_profile, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    # another request may have mounted one while the profile was loading
    controller = controllers.get(user_id)
    if controller is not None:
        return controller
    controller = LiveRefreshController(user_id, profile["signup_date"], profile["total_focus_minutes"])
    controllers[user_id] = controller
    controller.start()
    logger.info("Mounted streak refresh for user %s", user_id)
    await controller.refresh()
    return controller


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.post("/api/users", response_model=UserProfile, dependencies=[Depends(_verify_basic_auth)])
async def create_user(body: CreateUserRequest):
    profile = await run_in_threadpool(ensure_profile, body.user_id, body.signup_date)
    return UserProfile(**profile)


@app.post(
    "/api/users/{user_id}/sessions",
    response_model=DailyActivityRecord,
    dependencies=[Depends(_verify_basic_auth)],
)
async def record_session(user_id: str, body: RecordSessionRequest):
    if not await run_in_threadpool(get_profile, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    try:
        day = await run_in_threadpool(record_study_session, user_id, body.minutes, body.date)
    except ValueError as e:
        # the profile can vanish between the check above and the insert
        status = 404 if str(e) == "User not found" else 400
        raise HTTPException(status_code=status, detail=str(e))

    controller = app.state.controllers.get(user_id)
    if controller is not None:
        # the lifetime total moved; the average follows without waiting for a refresh
        profile = await run_in_threadpool(get_profile, user_id)
        controller.set_identity(user_id, profile["signup_date"], profile["total_focus_minutes"])
    return DailyActivityRecord(**day)


@app.get("/api/users/{user_id}/streak", response_model=StreakSnapshot, dependencies=[Depends(_verify_basic_auth)])
async def streak(user_id: str):
    controller = await _controller_for(user_id)
    return controller.snapshot()


@app.post(
    "/api/users/{user_id}/streak/refresh",
    response_model=StreakSnapshot,
    dependencies=[Depends(_verify_basic_auth)],
)
async def refresh_streak(user_id: str):
    controller = await _controller_for(user_id)
    await controller.refresh()
    return controller.snapshot()


@app.get("/api/users/{user_id}/heatmap", response_model=ActivityGrid, dependencies=[Depends(_verify_basic_auth)])
async def heatmap(user_id: str):
    controller = await _controller_for(user_id)
    return controller.activity_grid
