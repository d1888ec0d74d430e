"""
Web preview sessions: run a generated Expo app in the browser through
react-native-web instead of Expo Go.

Files are rewritten for the web (imports, Platform checks, native-only
modules) and wrapped in an HTML page that loads React, ReactDOM,
react-native-web and Babel standalone from a CDN. The "bundle" is a small
CommonJS-style module table generated here; nothing is compiled server-side.

Sessions are process-local with a fixed TTL (WEB_PREVIEW_TTL_S).
"""

from __future__ import annotations

import asyncio
import datetime
import json
import logging
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from string import Template

from capycode.core.config import settings
from capycode.schemas.project import ProjectFile

logger = logging.getLogger(__name__)

WEB_DEPENDENCIES = {
    "react-native-web": "^0.19.0",
    "react-dom": "^18.2.0",
}
ENTRY_PATHS = ("App.tsx", "App.js", "src/App.tsx")
NATIVE_ONLY = ("NativeModules", "requireNativeComponent", "UIManager")

_SCRIPT_RE = re.compile(r"\.(tsx?|jsx?)$")
_RN_IMPORT_RE = re.compile(r"""from ['"]react-native['"]""")
_PLATFORM_RES = (
    (re.compile(r"""Platform\.OS\s*===\s*['"]ios['"]"""), "false"),
    (re.compile(r"""Platform\.OS\s*===\s*['"]android['"]"""), "false"),
    (re.compile(r"""Platform\.OS\s*===\s*['"]web['"]"""), "true"),
)
_DEFAULT_IMPORT_RE = re.compile(r"""import\s+(\w+)\s+from\s+['"]([^'"]+)['"]""")
_NAMED_IMPORT_RE = re.compile(r"""import\s+\{\s*([^}]+?)\s*\}\s+from\s+['"]([^'"]+)['"]""")
_EXPORT_DEFAULT_RE = re.compile(r"export\s+default\s+")
_EXPORT_CONST_RE = re.compile(r"export\s+const\s+(\w+)")
# Only a closing script tag ends the inline <script>; other "</" must survive in JSX.
_SCRIPT_CLOSE_RE = re.compile(r"</(script)", re.IGNORECASE)

Clock = Callable[[], datetime.datetime]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class PreviewSessionNotFound(Exception):
    """Raised when updating an unknown or expired web preview session."""


@dataclass
class WebPreviewSession:
    id: str
    project_id: str
    user_id: str | None
    url: str
    iframe_url: str
    bundle_url: str
    status: str  # building | ready | error
    files: list[ProjectFile]
    dependencies: dict[str, str]
    created_at: datetime.datetime
    expires_at: datetime.datetime


class WebPreviewService:
    def __init__(
        self,
        base_url: str,
        ttl_s: float = 3600,
        clock: Clock = _utcnow,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.ttl = datetime.timedelta(seconds=ttl_s)
        self._now = clock
        self._sessions: dict[str, WebPreviewSession] = {}

    def create_session(
        self,
        project_id: str,
        files: list[ProjectFile],
        dependencies: dict[str, str] | None = None,
        user_id: str | None = None,
    ) -> WebPreviewSession:
        session_id = f"web-{secrets.token_urlsafe(12)[:12]}"
        now = self._now()

        session = WebPreviewSession(
            id=session_id,
            project_id=project_id,
            user_id=user_id,
            url=f"{self.base_url}/preview/{session_id}",
            iframe_url=f"{self.base_url}/embed/{session_id}",
            bundle_url=self._bundle_url(session_id),
            status="ready",
            files=transform_for_web(files),
            dependencies={**(dependencies or {}), **WEB_DEPENDENCIES},
            created_at=now,
            expires_at=now + self.ttl,
        )
        self._sessions[session_id] = session
        logger.info("Web preview %s created for project %s", session_id, project_id)
        return session

    def get_session(self, session_id: str) -> WebPreviewSession | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._now() > session.expires_at:
            del self._sessions[session_id]
            return None
        return session

    def update_session(self, session_id: str, files: list[ProjectFile]) -> WebPreviewSession:
        session = self.get_session(session_id)
        if session is None:
            raise PreviewSessionNotFound(session_id)

        session.status = "building"
        session.files = transform_for_web(files)
        session.bundle_url = self._bundle_url(session_id)
        session.status = "ready"
        logger.debug("Web preview %s rebuilt with %d files", session_id, len(files))
        return session

    def generate_preview_html(self, session: WebPreviewSession) -> str:
        ws_url = re.sub(r"^http", "ws", self.base_url)
        return _PREVIEW_PAGE.substitute(
            bundle=_SCRIPT_CLOSE_RE.sub(r"<\\/\1", generate_bundle_code(session.files)),
            reload_url=f"{ws_url}/ws/{session.id}",
        )

    def cleanup_expired(self) -> int:
        now = self._now()
        expired = [sid for sid, s in self._sessions.items() if now > s.expires_at]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Removed %d expired web preview(s)", len(expired))
        return len(expired)

    async def run_sweeper(self, interval_s: float) -> None:
        while True:
            try:
                self.cleanup_expired()
            except Exception:
                logger.exception("Web preview sweep failed")
            await asyncio.sleep(interval_s)

    def _bundle_url(self, session_id: str) -> str:
        return f"{self.base_url}/bundles/{session_id}.js"


# ── Source transforms ───────────────────────────────────────
def transform_for_web(files: list[ProjectFile]) -> list[ProjectFile]:
    """Copy of `files` with script sources rewritten for react-native-web."""
    transformed = []
    for file in files:
        if not _SCRIPT_RE.search(file.path):
            transformed.append(file)
            continue

        content = _RN_IMPORT_RE.sub("from 'react-native-web'", file.content)
        for pattern, literal in _PLATFORM_RES:
            content = pattern.sub(literal, content)
        for name in NATIVE_ONLY:
            content = re.sub(rf"\b{name}\b", f"/* {name} */null", content)

        transformed.append(file.model_copy(update={"content": content}))
    return transformed


def transform_imports(code: str) -> str:
    """Rewrite ES module syntax into the bundle's require/exports calls."""

    def named(match: re.Match[str]) -> str:
        path = match.group(2)
        statements = []
        for spec in match.group(1).split(","):
            spec = spec.strip()
            if not spec:
                continue
            imported, _, local = spec.partition(" as ")
            local = local.strip() or imported.strip()
            statements.append(f'const {local} = require("{path}").{imported.strip()}')
        return ";".join(statements)

    code = _DEFAULT_IMPORT_RE.sub(r'const \1 = require("\2").default || require("\2")', code)
    code = _NAMED_IMPORT_RE.sub(named, code)
    code = _EXPORT_DEFAULT_RE.sub("exports.default = ", code)
    return _EXPORT_CONST_RE.sub(r"const \1 = exports.\1", code)


def find_entry(files: list[ProjectFile]) -> ProjectFile | None:
    for file in files:
        if file.path in ENTRY_PATHS:
            return file
    return None


def generate_bundle_code(files: list[ProjectFile]) -> str:
    entry = find_entry(files)
    if entry is None:
        return _MISSING_ENTRY

    modules = "\n".join(
        _MODULE.substitute(path=json.dumps(f.path), body=transform_imports(f.content))
        for f in files
        if _SCRIPT_RE.search(f.path)
    )
    return _BUNDLE.substitute(modules=modules, entry=json.dumps(entry.path))


# ── Templates ───────────────────────────────────────────────
_MISSING_ENTRY = """
const { View, Text } = window.ReactNativeWeb;
const App = () => (
  React.createElement(View, { style: { flex: 1, justifyContent: 'center', alignItems: 'center' } },
    React.createElement(Text, null, 'No App.tsx found')
  )
);
ReactDOM.render(React.createElement(App), document.getElementById('root'));
"""

_MODULE = Template("""
// $path
modules[$path] = (function(exports, require, module) {
$body
});
""")

_BUNDLE = Template("""
const modules = {};
const moduleCache = {};

function require(path) {
  if (moduleCache[path]) return moduleCache[path].exports;
  if (path === 'react-native' || path === 'react-native-web') return window.ReactNativeWeb;
  if (path === 'react') return window.React;
  if (path === 'react-dom') return window.ReactDOM;

  const module = { exports: {} };
  moduleCache[path] = module;
  if (modules[path]) {
    modules[path](module.exports, require, module);
  }
  return module.exports;
}

$modules

const App = require($entry).default || require($entry);
ReactDOM.render(React.createElement(App), document.getElementById('root'));
""")

_PREVIEW_PAGE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0, maximum-scale=1.0, user-scalable=no">
  <title>CapyCode Preview</title>
  <style>
    * { box-sizing: border-box; margin: 0; padding: 0; }
    html, body, #root { height: 100%; width: 100%; overflow: hidden; }
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;
      -webkit-font-smoothing: antialiased;
    }
    #root { display: flex; flex-direction: column; }
    .loading {
      display: flex; align-items: center; justify-content: center;
      height: 100%; font-size: 18px; color: #666;
    }
    .error-overlay {
      position: fixed; inset: 0; padding: 20px; overflow: auto; z-index: 9999;
      background: rgba(255, 0, 0, 0.9); color: white; font-family: monospace;
    }
  </style>
</head>
<body>
  <div id="root">
    <div class="loading">Loading preview...</div>
  </div>

  <script src="https://unpkg.com/react@18/umd/react.production.min.js"></script>
  <script src="https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"></script>
  <script src="https://unpkg.com/react-native-web@0.19/dist/index.umd.js"></script>
  <script src="https://unpkg.com/@babel/standalone/babel.min.js"></script>

  <script type="text/babel" data-presets="react,typescript" data-plugins="transform-modules-umd">
$bundle
  </script>

  <script>
    const ws = new WebSocket('$reload_url');
    ws.onmessage = (event) => {
      const data = JSON.parse(event.data);
      if (data.type === 'reload') window.location.reload();
    };
  </script>
</body>
</html>
""")


preview_service = WebPreviewService(
    base_url=settings.PREVIEW_URL,
    ttl_s=settings.WEB_PREVIEW_TTL_S,
)


def get_preview_service() -> WebPreviewService:
    """FastAPI dependency; overridden in tests."""
    return preview_service
