import logging
from collections import deque
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import StateStore, get_editable_settings, get_settings, update_settings
from .errors import EmptyResultError, FetchError, FetchErrorKind, PlaybackError, TvShowsError
from .services.catalog import EpisodeCatalog, EpisodeList
from .services.commands import PartEnded, PlaybackFailed, ProgressUpdate, command_from_dict
from .services.fetch import FetchClient
from .services.hosts import HostRegistry
from .services.notices import Notices
from .services.playback import Phase, PlaybackSession
from .services.player import BrowserPlayer
from .services.remote import KeyEvent, KeyEventBus, RemoteInputRouter


# Custom log handler to capture recent logs
class LogCapture(logging.Handler):
    def __init__(self, maxlen=100):
        super().__init__()
        self.logs = deque(maxlen=maxlen)

    def emit(self, record):
        self.logs.append(
            {
                "time": datetime.fromtimestamp(record.created).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            }
        )


log_capture = LogCapture(maxlen=100)
log_capture.setFormatter(logging.Formatter("%(message)s"))

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Add capture handler to root logger
logging.getLogger().addHandler(log_capture)
logging.getLogger("httpx").setLevel(logging.WARNING)


class PlayerShell:
    """Per-process wiring of the fetch layer and the playback session.

    Every screen (home, episode list, playback) gets its own FetchClient so
    a request on one screen never supersedes a request on another.
    """

    def __init__(self, registry: HostRegistry, settings, transport=None):
        self.registry = registry
        self.settings = settings
        self.notices = Notices()
        self.key_bus = KeyEventBus()
        self.router = RemoteInputRouter(seek_step=settings.seek_step)
        self.player = BrowserPlayer()
        self._transport = transport

        self.home_catalog = EpisodeCatalog(self._client())
        self.episodes_catalog = EpisodeCatalog(self._client())
        self.episode_lists: dict[tuple[str, str], EpisodeList] = {}

        self.session: PlaybackSession | None = None
        self._session_stack: AsyncExitStack | None = None

    def _client(self) -> FetchClient:
        return FetchClient(
            self.registry,
            notices=self.notices,
            timeout=self.settings.request_timeout,
            transport=self._transport,
        )

    async def load_episodes(self, channel: str, show: str, load_more: bool) -> tuple[EpisodeList, bool]:
        """Returns the episode list and whether this call loaded anything."""
        key = (channel, show)
        existing = self.episode_lists.get(key)
        if load_more and existing is not None:
            result = await self.episodes_catalog.load_more(existing)
            if result is None:
                return existing, False
        else:
            result = await self.episodes_catalog.load(channel, show)
        self.episode_lists[key] = result
        return result, True

    async def open_session(self, channel: str, show: str, episode: str) -> PlaybackSession:
        await self.close_session()
        session = PlaybackSession(
            channel,
            show,
            episode,
            catalog=EpisodeCatalog(self._client()),
            player=self.player,
            notices=self.notices,
            key_bus=self.key_bus,
            router=self.router,
            autoplay=self.settings.autoplay_parts,
            on_continue=lambda nxt: self._continue(session, nxt),
        )
        stack = AsyncExitStack()
        await stack.enter_async_context(session)
        self.session = session
        self._session_stack = stack
        await session.open()
        return session

    async def _continue(self, finished: PlaybackSession, next_episode: str) -> None:
        if self.session is not finished:
            return
        await self.open_session(finished.channel, finished.show, next_episode)

    async def close_session(self) -> None:
        session, stack = self.session, self._session_stack
        self.session = None
        self._session_stack = None
        if stack is not None:
            await stack.aclose()
        if session is not None:
            await session.catalog.client.aclose()

    async def aclose(self) -> None:
        await self.close_session()
        await self.home_catalog.client.aclose()
        await self.episodes_catalog.client.aclose()


def error_status(error: TvShowsError) -> int:
    if isinstance(error, EmptyResultError):
        return 404
    if isinstance(error, FetchError):
        if error.kind is FetchErrorKind.HOSTS_EXHAUSTED:
            return 503
        if error.kind is FetchErrorKind.CANCELLED:
            return 409
        return 502
    if isinstance(error, PlaybackError):
        return 422
    return 500


def raise_for_error(error: TvShowsError):
    detail = error.to_dict() if isinstance(error, FetchError) else {"message": str(error)}
    raise HTTPException(status_code=error_status(error), detail=detail)


def create_shell() -> PlayerShell:
    settings = get_settings()
    registry = HostRegistry(settings.hosts, store=StateStore())
    logger.info(f"Media server hosts: {settings.hosts}, using {registry.current().address}")
    return PlayerShell(registry, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    app.state.shell = create_shell()

    yield

    await app.state.shell.aclose()


app = FastAPI(
    title="TV Shows Player",
    description="Playback session and resilient fetch layer for TV show front-ends",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_shell(request: Request) -> PlayerShell:
    return request.app.state.shell


def get_session(shell: PlayerShell = Depends(get_shell)) -> PlaybackSession:
    if shell.session is None:
        raise HTTPException(status_code=404, detail="No active session")
    return shell.session


class HealthResponse(BaseModel):
    status: str
    host: str


class CommandRequest(BaseModel):
    name: str
    value: str | float | int | None = None


class KeyRequest(BaseModel):
    key_code: int
    event_time: str = ""


class ProgressRequest(BaseModel):
    current_time: float
    total_duration: float


class ErrorRequest(BaseModel):
    message: str = "Playback failed"


class SettingsUpdate(BaseModel):
    hosts: list[str] | None = None
    seek_step: float | None = None
    autoplay_parts: bool | None = None


@app.get("/health", response_model=HealthResponse)
async def health(shell: PlayerShell = Depends(get_shell)):
    """Health check endpoint."""
    return HealthResponse(status="ok", host=shell.registry.current().address)


@app.get("/api/logs")
async def get_logs(level: str | None = None, limit: int = 100):
    """Get recent logs for debugging.

    Args:
        level: Filter by log level (DEBUG, INFO, WARNING, ERROR)
        limit: Maximum number of logs to return (default 100, max 500)
    """
    limit = min(limit, 500)
    logs = list(log_capture.logs)

    if level:
        level_upper = level.upper()
        logs = [log for log in logs if log["level"] == level_upper]

    return {
        "logs": list(reversed(logs[-limit:])),
        "total": len(log_capture.logs),
        "filtered": len(logs),
    }


@app.get("/api/notices")
async def get_notices(limit: int = 50, shell: PlayerShell = Depends(get_shell)):
    return {"notices": shell.notices.recent(limit)}


@app.get("/api/settings")
async def get_app_settings():
    return get_editable_settings()


@app.put("/api/settings")
async def put_app_settings(update: SettingsUpdate, shell: PlayerShell = Depends(get_shell)):
    """Persist editable settings. Host changes apply on the next start."""
    changes = update.model_dump(exclude_none=True)
    settings = update_settings(changes)
    shell.router.seek_step = settings.seek_step
    return get_editable_settings()


@app.get("/home")
async def home(shell: PlayerShell = Depends(get_shell)):
    try:
        channels = await shell.home_catalog.home()
    except FetchError as e:
        raise_for_error(e)
    return {name: [s.to_dict() for s in shows] for name, shows in channels.items()}


@app.get("/episodes/{channel}/{show}")
async def episodes(
    channel: str, show: str, load_more: bool = False, shell: PlayerShell = Depends(get_shell)
):
    try:
        result, loaded = await shell.load_episodes(channel, show, load_more)
    except FetchError as e:
        raise_for_error(e)
    return {**result.to_dict(), "loaded": loaded}


@app.post("/session/{channel}/{show}/{episode}")
async def open_session(channel: str, show: str, episode: str, shell: PlayerShell = Depends(get_shell)):
    session = await shell.open_session(channel, show, episode)
    if session.phase is Phase.FAILED and session.error is not None:
        error = session.error
        await shell.close_session()
        raise_for_error(error)
    return session.snapshot()


@app.get("/session")
async def session_state(session: PlaybackSession = Depends(get_session)):
    return session.snapshot()


@app.delete("/session")
async def close_session(shell: PlayerShell = Depends(get_shell)):
    await shell.close_session()
    return {"status": "ok"}


@app.post("/session/command")
async def session_command(request: CommandRequest, session: PlaybackSession = Depends(get_session)):
    try:
        command = command_from_dict(request.model_dump())
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    await session.dispatch(command)
    return session.snapshot()


@app.post("/session/key")
async def session_key(request: KeyRequest, shell: PlayerShell = Depends(get_shell)):
    delivered = shell.key_bus.publish(KeyEvent(request.key_code, request.event_time))
    return {"status": "ok", "delivered": delivered}


@app.post("/session/progress")
async def session_progress(request: ProgressRequest, session: PlaybackSession = Depends(get_session)):
    state = await session.dispatch(ProgressUpdate(request.current_time, request.total_duration))
    return state.to_dict()


@app.post("/session/ended")
async def session_ended(
    session: PlaybackSession = Depends(get_session), shell: PlayerShell = Depends(get_shell)
):
    await session.dispatch(PartEnded())
    # Continuation may have replaced the session
    current = shell.session or session
    return current.snapshot()


@app.post("/session/error")
async def session_error(request: ErrorRequest, session: PlaybackSession = Depends(get_session)):
    await session.dispatch(PlaybackFailed(request.message))
    return session.snapshot()


@app.get("/session/directives")
async def session_directives(shell: PlayerShell = Depends(get_shell)):
    return {"directives": shell.player.drain()}


def run():
    import uvicorn

    settings = get_settings()
    uvicorn.run("tvshows.main:app", host="0.0.0.0", port=settings.server_port)
