"""
Expo sandbox session manager.

Keeps one simulated Expo development environment per user: a snapshot of
the project's files, a cleaned dependency map, fake Metro/Expo URLs and a
QR payload for Expo Go, plus a bounded log buffer that subscribers can
stream in real time (SSE route in capycode.routers.sandbox).

Nothing here spawns processes: "installing" and "starting Metro" are
timed delays. All state is process-local and lost on restart; running
more than one worker would need an external store.

Expiry:
  • get_sandbox() treats a session past expires_at as gone (lazy).
  • run_sweeper() stops expired sessions every SANDBOX_SWEEP_INTERVAL_S.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import secrets
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from capycode.core.config import settings
from capycode.schemas.project import ProjectFile

logger = logging.getLogger(__name__)

# ── Constants ───────────────────────────────────────────────
MAX_LOGS_PER_SESSION = 1000
EXPO_SDK_VERSION = "53.0.0"
BASE_METRO_PORT = 8081

# Baseline versions; the project's own entries take precedence.
_CORE_DEPENDENCIES = {
    "expo-status-bar": "~2.0.0",
    "react": "18.3.1",
    "react-native": "0.76.3",
}
# Native modules that cannot run inside Expo Go.
_INCOMPATIBLE_PACKAGES = ("react-native-code-push", "react-native-firebase")

LOG_LEVELS = ("info", "warn", "error", "debug")
LOG_SOURCES = ("expo", "metro", "app", "system")

# Events delivered to subscribers
EVENT_LOG = "log"
EVENT_HOT_RELOAD = "hot_reload"
EVENT_STOPPED = "stopped"

Listener = Callable[[str, Any], None]
Clock = Callable[[], datetime.datetime]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _short_id(length: int = 12) -> str:
    """URL-safe random id of exactly `length` characters."""
    return secrets.token_urlsafe(length)[:length]


class SandboxNotFound(Exception):
    """Raised when an operation targets an unknown or expired sandbox."""


# ── Session state ───────────────────────────────────────────
@dataclass(slots=True)
class SandboxLog:
    id: str
    timestamp: datetime.datetime
    level: str
    message: str
    source: str
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "message": self.message,
            "source": self.source,
            "metadata": self.metadata,
        }

    def to_line(self) -> str:
        """One expo.log line: timestamp, padded level, padded [source], message."""
        timestamp = self.timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        source = f"[{self.source}]"
        return f"{timestamp} {self.level.upper():<5} {source:<10} {self.message}"


@dataclass
class SandboxSession:
    id: str
    project_id: str
    user_id: str
    status: str  # initializing | running | stopped | error
    dev_server_url: str
    metro_port: int
    expo_url: str
    qr_code_data: str
    files: dict[str, ProjectFile]
    dependencies: dict[str, str]
    created_at: datetime.datetime
    last_activity_at: datetime.datetime
    expires_at: datetime.datetime
    logs: deque[SandboxLog] = field(
        default_factory=lambda: deque(maxlen=MAX_LOGS_PER_SESSION)
    )
    listeners: list[Listener] = field(default_factory=list)

    @property
    def files_count(self) -> int:
        return len(self.files)

    @property
    def logs_count(self) -> int:
        return len(self.logs)


# ── Service ─────────────────────────────────────────────────
class ExpoSandboxService:
    """In-memory registry of sandbox sessions, indexed by id and by user."""

    def __init__(
        self,
        timeout_s: float,
        install_delay_s: float = 0.5,
        start_delay_s: float = 0.3,
        clock: Clock = _utcnow,
    ) -> None:
        self.timeout = datetime.timedelta(seconds=timeout_s)
        self.install_delay_s = install_delay_s
        self.start_delay_s = start_delay_s
        self._now = clock
        self._sessions: dict[str, SandboxSession] = {}
        self._by_user: dict[str, str] = {}

    # ── Session management ─────────────────────────────────
    async def create_sandbox(
        self,
        project_id: str,
        user_id: str,
        files: Iterable[ProjectFile],
        dependencies: dict[str, str] | None = None,
        sdk_version: str = EXPO_SDK_VERSION,
    ) -> SandboxSession:
        """
        Start a sandbox for the user, replacing any sandbox they already have.

        Returns once the simulated initialisation has finished; on failure
        the session is left in 'error' state and the exception propagates.
        If the user starts another sandbox meanwhile, this one is stopped
        and SandboxNotFound is raised instead.
        """
        existing_id = self._by_user.get(user_id)
        if existing_id is not None:
            await self.stop_sandbox(existing_id)

        sandbox_id = f"sandbox-{_short_id()}"
        metro_port = self._allocate_port()
        now = self._now()

        session = SandboxSession(
            id=sandbox_id,
            project_id=project_id,
            user_id=user_id,
            status="initializing",
            dev_server_url=f"http://localhost:{metro_port}",
            metro_port=metro_port,
            expo_url=f"exp://localhost:{metro_port}",
            qr_code_data="",
            files={f.path: f for f in files},
            dependencies=clean_dependencies(dependencies or {}, sdk_version),
            created_at=now,
            last_activity_at=now,
            expires_at=now + self.timeout,
        )

        self._sessions[sandbox_id] = session
        self._by_user[user_id] = sandbox_id
        logger.info(
            "Sandbox %s created for project %s (%d files, port %d)",
            sandbox_id, project_id, session.files_count, metro_port,
        )

        await self._initialize(session, sdk_version)
        return session

    def get_sandbox(self, sandbox_id: str) -> SandboxSession | None:
        """Return a live session and record activity; None if unknown or expired."""
        session = self._sessions.get(sandbox_id)
        if session is None:
            return None

        now = self._now()
        if now > session.expires_at:
            self._discard(session, reason="expired")
            return None

        session.last_activity_at = now
        return session

    def get_sandbox_by_user(self, user_id: str) -> SandboxSession | None:
        sandbox_id = self._by_user.get(user_id)
        if sandbox_id is None:
            return None
        return self.get_sandbox(sandbox_id)

    async def stop_sandbox(self, sandbox_id: str) -> None:
        """Stop and forget a sandbox. Unknown ids are ignored."""
        session = self._sessions.get(sandbox_id)
        if session is None:
            return
        self._discard(session, reason="stopped")

    # ── File synchronisation ───────────────────────────────
    async def update_files(self, sandbox_id: str, files: list[ProjectFile]) -> None:
        """Upsert files by path and signal a hot reload."""
        session = self._require(sandbox_id)

        for file in files:
            session.files[file.path] = file
        session.last_activity_at = self._now()

        paths = [f.path for f in files]
        self.add_log(
            session, "info",
            f"Updated {len(files)} file(s): {', '.join(paths)}",
            "metro",
        )
        self._hot_reload(session, paths)

    def get_file(self, sandbox_id: str, path: str) -> ProjectFile | None:
        session = self.get_sandbox(sandbox_id)
        if session is None:
            return None
        return session.files.get(path)

    def get_all_files(self, sandbox_id: str) -> list[ProjectFile]:
        session = self.get_sandbox(sandbox_id)
        if session is None:
            return []
        return list(session.files.values())

    # ── Logging ────────────────────────────────────────────
    def add_log(
        self,
        session: SandboxSession,
        level: str,
        message: str,
        source: str,
        metadata: dict[str, Any] | None = None,
    ) -> SandboxLog:
        """Append to the ring buffer (oldest entry dropped when full) and publish."""
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level!r}")
        if source not in LOG_SOURCES:
            raise ValueError(f"Unknown log source: {source!r}")

        entry = SandboxLog(
            id=_short_id(8),
            timestamp=self._now(),
            level=level,
            message=message,
            source=source,
            metadata=metadata,
        )
        session.logs.append(entry)
        self._emit(session, EVENT_LOG, entry)
        return entry

    def get_logs(
        self,
        sandbox_id: str,
        limit: int | None = None,
        level: str | None = None,
    ) -> list[SandboxLog]:
        """Buffered logs, optionally filtered by level, newest `limit` kept."""
        session = self.get_sandbox(sandbox_id)
        if session is None:
            return []

        logs = list(session.logs)
        if level:
            logs = [entry for entry in logs if entry.level == level]
        if limit:
            logs = logs[-limit:]
        return logs

    def subscribe(self, sandbox_id: str, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for log, hot_reload and stopped events.

        Returns the matching unsubscribe function; calling it twice is harmless.
        """
        session = self._require(sandbox_id)
        session.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in session.listeners:
                session.listeners.remove(listener)

        return unsubscribe

    def export_logs(self, sandbox_id: str) -> str:
        """Render the buffered logs in expo.log format."""
        return "\n".join(entry.to_line() for entry in self.get_logs(sandbox_id))

    # ── Expiry ─────────────────────────────────────────────
    async def cleanup_expired(self) -> int:
        """Stop every session past its expiry. Returns how many were removed."""
        now = self._now()
        expired = [s for s in self._sessions.values() if now > s.expires_at]
        for session in expired:
            logger.info("Cleaning up expired sandbox: %s", session.id)
            self._discard(session, reason="expired")
        return len(expired)

    async def run_sweeper(self, interval_s: float) -> None:
        """Background loop for the application lifespan; runs until cancelled."""
        while True:
            try:
                await self.cleanup_expired()
            except Exception:
                logger.exception("Sandbox sweep failed")
            await asyncio.sleep(interval_s)

    # ── Statistics ─────────────────────────────────────────
    def get_stats(self) -> dict[str, int]:
        sessions = list(self._sessions.values())
        total_logs = sum(s.logs_count for s in sessions)
        total_duration = sum(
            (s.last_activity_at - s.created_at).total_seconds() for s in sessions
        )
        return {
            "active_sandboxes": len(sessions),
            "total_logs": total_logs,
            "avg_session_duration": round(total_duration / len(sessions)) if sessions else 0,
        }

    # ── Internals ──────────────────────────────────────────
    async def _initialize(self, session: SandboxSession, sdk_version: str) -> None:
        try:
            self.add_log(session, "info", "Initializing Expo sandbox...", "system")

            self.add_log(
                session, "info",
                f"Installing {len(session.dependencies)} dependencies...",
                "system",
            )
            await asyncio.sleep(self.install_delay_s)
            self._ensure_registered(session)

            self.add_log(session, "info", "Starting Metro bundler...", "metro")
            await asyncio.sleep(self.start_delay_s)
            self._ensure_registered(session)

            self.add_log(
                session, "info",
                f"Metro bundler running on port {session.metro_port}",
                "metro",
            )

            session.qr_code_data = (
                f"exp://u.expo.dev/sandbox/{session.id}?runtime=exposdk:{sdk_version}"
            )
            session.status = "running"
            self.add_log(session, "info", "✓ Sandbox ready!", "system")
            self.add_log(session, "info", f"Expo URL: {session.expo_url}", "expo")
        except SandboxNotFound:
            logger.info("Sandbox %s was stopped during initialization", session.id)
            raise
        except Exception as exc:
            session.status = "error"
            self.add_log(session, "error", f"Initialization failed: {exc}", "system")
            logger.exception("Sandbox %s failed to initialize", session.id)
            raise

    def _ensure_registered(self, session: SandboxSession) -> None:
        """Raise SandboxNotFound once `session` is no longer registered."""
        if self._sessions.get(session.id) is not session:
            raise SandboxNotFound(session.id)

    def _hot_reload(self, session: SandboxSession, paths: list[str]) -> None:
        self.add_log(session, "debug", "Hot reloading...", "metro")
        self._emit(session, EVENT_HOT_RELOAD, {"files": paths})
        self.add_log(session, "info", "✓ Hot reload complete", "metro")

    def _emit(self, session: SandboxSession, event: str, payload: Any) -> None:
        for listener in list(session.listeners):
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Sandbox %s listener failed on %s", session.id, event)

    def _discard(self, session: SandboxSession, reason: str) -> None:
        session.status = "stopped"
        self.add_log(session, "info", f"Sandbox {reason}", "system")
        self._emit(session, EVENT_STOPPED, {"reason": reason})

        self._sessions.pop(session.id, None)
        if self._by_user.get(session.user_id) == session.id:
            del self._by_user[session.user_id]
        session.listeners.clear()
        logger.info("Sandbox %s %s", session.id, reason)

    def _require(self, sandbox_id: str) -> SandboxSession:
        session = self.get_sandbox(sandbox_id)
        if session is None:
            raise SandboxNotFound(sandbox_id)
        return session

    def _allocate_port(self) -> int:
        """Lowest Metro port not held by an active session."""
        in_use = {s.metro_port for s in self._sessions.values()}
        port = BASE_METRO_PORT
        while port in in_use:
            port += 1
        return port


def clean_dependencies(dependencies: dict[str, str], sdk_version: str) -> dict[str, str]:
    """Pin the Expo core packages and drop modules Expo Go cannot load."""
    cleaned = {"expo": f"~{sdk_version}", **_CORE_DEPENDENCIES}
    for name, version in dependencies.items():
        if any(bad in name for bad in _INCOMPATIBLE_PACKAGES):
            continue
        cleaned[name] = version
    return cleaned


# Shared by the routers and the lifespan sweeper
sandbox_service = ExpoSandboxService(
    timeout_s=settings.SANDBOX_TIMEOUT_MS / 1000,
    install_delay_s=settings.SANDBOX_INSTALL_DELAY_MS / 1000,
    start_delay_s=settings.SANDBOX_START_DELAY_MS / 1000,
)


def get_sandbox_service() -> ExpoSandboxService:
    """FastAPI dependency; overridden in tests."""
    return sandbox_service
