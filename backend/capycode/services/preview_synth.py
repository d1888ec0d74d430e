"""
Static device-mock previews synthesized from an app's source.

No code is executed: the entry file is matched against a fixed, ordered
list of patterns to guess what kind of app it is (calculator, chat, ...),
and a canned HTML screen for that kind is rendered inside a phone or
tablet frame, tinted with the app's own accent colour.

Pure functions only, so the same input always yields the same HTML.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

from capycode.schemas.project import ProjectFile

ENTRY_MARKERS = ("App.tsx", "App.js", "index.tsx")
SNIPPET_LENGTH = 500

# (app type, pattern, default accent) in priority order; first match wins.
_APP_TYPES: tuple[tuple[str, re.Pattern[str], str], ...] = (
    ("calculator", re.compile(r"calculat|\boperand\b|\boperator\b", re.I), "#f59e0b"),
    ("chat", re.compile(r"\bchat|sendMessage|\bmessages\b|\binbox\b", re.I), "#3b82f6"),
    ("todo", re.compile(r"todo|to-do|\btasks?\b|checklist", re.I), "#10b981"),
    ("weather", re.compile(r"weather|forecast|temperature|humidity", re.I), "#0ea5e9"),
    ("shop", re.compile(r"\bcart\b|checkout|\bproducts?\b|\bshop", re.I), "#ec4899"),
    ("profile", re.compile(r"profile|avatar|\bbio\b", re.I), "#8b5cf6"),
    ("social", re.compile(r"\bfeed\b|\bposts?\b|\blikes?\b|followers|social", re.I), "#f43f5e"),
)
GENERIC = "generic"
GENERIC_ACCENT = "#10b981"

_HEX_COLOR_RE = re.compile(r"#([0-9a-fA-F]{6})\b")
_TITLE_PROP_RE = re.compile(r"""title:\s*['"]([^'"]+)['"]""")
_TEXT_CHILD_RE = re.compile(r"<Text[^>]*>\s*([^<{]+?)\s*</Text>")

# Max channel spread for a colour to count as grey (black and white included).
_GREY_SPREAD = 16

DEVICE_FRAMES = {
    "iphone": {"width": 320, "height": 660, "radius": 55},
    "android": {"width": 320, "height": 680, "radius": 35},
    "ipad": {"width": 680, "height": 480, "radius": 28},
}


@dataclass(frozen=True, slots=True)
class AppClassification:
    app_type: str
    accent_color: str
    title: str | None


def find_entry_source(files: list[ProjectFile]) -> str | None:
    for file in files:
        if any(marker in file.path for marker in ENTRY_MARKERS):
            return file.content
    return None


def _is_grey(hex_digits: str) -> bool:
    r, g, b = (int(hex_digits[i:i + 2], 16) for i in (0, 2, 4))
    return max(r, g, b) - min(r, g, b) < _GREY_SPREAD


def _accent_color(source: str) -> str | None:
    for match in _HEX_COLOR_RE.finditer(source):
        if not _is_grey(match.group(1)):
            return f"#{match.group(1).lower()}"
    return None


def _title(source: str) -> str | None:
    match = _TITLE_PROP_RE.search(source) or _TEXT_CHILD_RE.search(source)
    return match.group(1).strip() if match else None


def classify_app(source: str) -> AppClassification:
    app_type, default_accent = GENERIC, GENERIC_ACCENT
    for name, pattern, accent in _APP_TYPES:
        if pattern.search(source):
            app_type, default_accent = name, accent
            break

    return AppClassification(
        app_type=app_type,
        accent_color=_accent_color(source) or default_accent,
        title=_title(source),
    )


def render_preview_html(
    files: list[ProjectFile],
    app_name: str = "My App",
    device: str = "iphone",
) -> str:
    """Full HTML document: the mock screen for the app inside a device frame."""
    frame = DEVICE_FRAMES.get(device, DEVICE_FRAMES["iphone"])
    source = find_entry_source(files)

    if source is None:
        screen = _WAITING_SCREEN
        accent = GENERIC_ACCENT
    else:
        app = classify_app(source)
        accent = app.accent_color
        heading = html.escape(app.title or app_name)
        if app.app_type == GENERIC:
            body = _generic_body(source)
        else:
            body = _BODIES[app.app_type]
        screen = f'<header class="app-header"><h1>{heading}</h1></header>\n{body}'

    return _PAGE.format(
        title=html.escape(app_name),
        accent=accent,
        width=frame["width"],
        height=frame["height"],
        radius=frame["radius"],
        device=device if device in DEVICE_FRAMES else "iphone",
        screen=screen,
    )


def _generic_body(source: str) -> str:
    snippet = html.escape(source[:SNIPPET_LENGTH])
    if len(source) > SNIPPET_LENGTH:
        snippet += "..."
    return (
        '<div class="content center">'
        '<div class="badge"><span class="dot"></span>Code Generated</div>'
        "<p>Your app code is ready!<br>Use Expo Go to test on device.</p>"
        f'<pre class="code">{snippet}</pre>'
        "</div>"
    )


# ── Canned screens ──────────────────────────────────────────
_WAITING_SCREEN = """
<div class="content center">
  <h3>No Preview Available</h3>
  <p>Generate a project using AI to see the live preview here</p>
  <div class="badge"><span class="dot"></span>Waiting for code...</div>
</div>"""

_BODIES = {
    "calculator": """
<div class="content calc">
  <div class="display">1,234</div>
  <div class="keys">
    <span>C</span><span>±</span><span>%</span><span class="accent">÷</span>
    <span>7</span><span>8</span><span>9</span><span class="accent">×</span>
    <span>4</span><span>5</span><span>6</span><span class="accent">−</span>
    <span>1</span><span>2</span><span>3</span><span class="accent">+</span>
    <span class="wide">0</span><span>.</span><span class="accent">=</span>
  </div>
</div>""",
    "chat": """
<div class="content">
  <div class="bubble them">Hey! How's it going?</div>
  <div class="bubble me">Great, just shipped the new build 🎉</div>
  <div class="bubble them">Nice, sending it to the team now</div>
  <div class="composer"><span>Message...</span><b class="accent-bg">Send</b></div>
</div>""",
    "todo": """
<div class="content">
  <div class="row"><span class="check done"></span><s>Buy groceries</s></div>
  <div class="row"><span class="check"></span>Finish the report</div>
  <div class="row"><span class="check"></span>Call the dentist</div>
  <div class="row"><span class="check"></span>Go for a run</div>
  <div class="fab accent-bg">+</div>
</div>""",
    "weather": """
<div class="content center">
  <div class="big">☀️</div>
  <div class="big accent">24°</div>
  <p>Sunny · H 27° L 18°</p>
  <div class="forecast"><span>Mon 25°</span><span>Tue 22°</span><span>Wed 19°</span></div>
</div>""",
    "shop": """
<div class="content grid">
  <div class="card"><div class="thumb accent-bg"></div>Sneakers<b>$89</b></div>
  <div class="card"><div class="thumb accent-bg"></div>Backpack<b>$49</b></div>
  <div class="card"><div class="thumb accent-bg"></div>Watch<b>$199</b></div>
  <div class="card"><div class="thumb accent-bg"></div>Headphones<b>$129</b></div>
</div>""",
    "profile": """
<div class="content center">
  <div class="avatar accent-bg"></div>
  <h3>Alex Morgan</h3>
  <p>Designer · Coffee lover</p>
  <div class="forecast"><span><b>128</b> posts</span><span><b>2.4k</b> followers</span></div>
</div>""",
    "social": """
<div class="content">
  <div class="card post"><div class="row"><span class="avatar small accent-bg"></span>jamie</div>
    <div class="thumb wide accent-bg"></div>♥ 312 likes</div>
  <div class="card post"><div class="row"><span class="avatar small accent-bg"></span>sam</div>
    <div class="thumb wide accent-bg"></div>♥ 87 likes</div>
</div>""",
}

_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1, user-scalable=no">
  <title>{title}</title>
  <style>
    * {{ margin: 0; padding: 0; box-sizing: border-box; user-select: none; }}
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      background: #0a0a0b; color: white; min-height: 100vh;
      display: flex; align-items: center; justify-content: center;
    }}
    .device {{
      width: {width}px; height: {height}px; border-radius: {radius}px;
      padding: 3px; background: linear-gradient(#2a2a2c, #1a1a1c, #2a2a2c);
    }}
    .screen {{
      width: 100%; height: 100%; border-radius: {radius}px; overflow: hidden;
      background: #0a0a0b; display: flex; flex-direction: column; padding: 40px 16px 16px;
    }}
    .app-header h1 {{ font-size: 24px; font-weight: 700; margin-bottom: 16px; }}
    .content {{ flex: 1; display: flex; flex-direction: column; gap: 10px; color: #d4d4d8; }}
    .center {{ align-items: center; justify-content: center; text-align: center; }}
    .accent {{ color: {accent}; }}
    .accent-bg {{ background: {accent}; }}
    .badge {{
      display: inline-flex; align-items: center; gap: 8px; padding: 8px 16px;
      border-radius: 20px; border: 1px solid {accent}; color: {accent}; font-size: 12px;
    }}
    .dot {{ width: 6px; height: 6px; border-radius: 50%; background: {accent}; }}
    .code {{
      background: #1f1f23; border-radius: 12px; padding: 16px; font-size: 11px;
      color: {accent}; white-space: pre-wrap; word-break: break-all; text-align: left;
    }}
    .display {{ font-size: 48px; text-align: right; padding: 24px 8px; }}
    .keys {{ display: grid; grid-template-columns: repeat(4, 1fr); gap: 8px; }}
    .keys span {{ background: #1f1f23; border-radius: 50%; aspect-ratio: 1; display: flex;
      align-items: center; justify-content: center; font-size: 22px; }}
    .keys .accent {{ background: {accent}; color: white; }}
    .keys .wide {{ grid-column: span 2; aspect-ratio: auto; border-radius: 32px; }}
    .bubble {{ max-width: 75%; padding: 10px 14px; border-radius: 16px; background: #1f1f23; }}
    .bubble.me {{ align-self: flex-end; background: {accent}; color: white; }}
    .composer {{ margin-top: auto; display: flex; justify-content: space-between;
      background: #1f1f23; border-radius: 20px; padding: 8px 8px 8px 16px; }}
    .composer b {{ border-radius: 14px; padding: 4px 12px; }}
    .row {{ display: flex; align-items: center; gap: 10px; padding: 8px 0; }}
    .check {{ width: 20px; height: 20px; border-radius: 6px; border: 2px solid {accent}; }}
    .check.done {{ background: {accent}; }}
    .fab {{ margin-top: auto; align-self: flex-end; width: 52px; height: 52px; border-radius: 50%;
      display: flex; align-items: center; justify-content: center; font-size: 28px; }}
    .big {{ font-size: 64px; }}
    .forecast {{ display: flex; gap: 16px; margin-top: 16px; }}
    .grid {{ display: grid; grid-template-columns: 1fr 1fr; gap: 12px; }}
    .card {{ background: #1f1f23; border-radius: 14px; padding: 10px; display: flex;
      flex-direction: column; gap: 6px; }}
    .thumb {{ height: 80px; border-radius: 10px; opacity: 0.8; }}
    .thumb.wide {{ height: 140px; }}
    .avatar {{ width: 88px; height: 88px; border-radius: 50%; }}
    .avatar.small {{ width: 28px; height: 28px; }}
  </style>
</head>
<body>
  <div class="device device-{device}">
    <div class="screen">
{screen}
    </div>
  </div>
</body>
</html>
"""
