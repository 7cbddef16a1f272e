"""Output rendering for the credcache CLI."""

from datetime import datetime
from typing import Optional

from rich.text import Text

from ..record import CacheState
from .theme import DEFAULT_PALETTE, ColorPalette, console


def mask_token(token: str, visible: int = 4) -> str:
    """Hide all but the last few characters of a token."""
    if len(token) <= visible:
        return "*" * len(token)
    return "*" * 8 + token[-visible:]


def render_error(text: str) -> None:
    """Render an error message."""
    palette = DEFAULT_PALETTE
    err = Text()
    err.append("err ", style=f"bold {palette.error}")
    err.append("| ", style=f"dim {palette.text_muted}")
    err.append(text, style=palette.error)
    console.print(err)


def render_success(text: str) -> None:
    """Render a confirmation line."""
    palette = DEFAULT_PALETTE
    ok = Text()
    ok.append("ok  ", style=f"bold {palette.granted}")
    ok.append("| ", style=f"dim {palette.text_muted}")
    ok.append(text, style=palette.text_bright)
    console.print(ok)


def _format_expiry(expires_at: Optional[int], now: Optional[int]) -> str:
    if expires_at is None:
        return "-"
    stamp = datetime.fromtimestamp(expires_at).strftime("%Y-%m-%d %H:%M:%S")
    if now is None:
        return stamp
    remaining = expires_at - now
    if remaining <= 0:
        return f"{stamp} (expired)"
    minutes, seconds = divmod(remaining, 60)
    return f"{stamp} (in {minutes}m {seconds:02d}s)"


def render_status_table(
    state: CacheState,
    authenticated: bool,
    token_path: str = "",
    now: Optional[int] = None,
    palette: ColorPalette = DEFAULT_PALETTE,
) -> None:
    """Render a borderless, whitespace-aligned summary of the cache state."""
    col_label = 14

    rows = [
        ("status", "signed in" if authenticated else "signed out"),
        ("user", state.user_id or "-"),
        ("username", state.username or "-"),
        ("permissions", ", ".join(state.permissions) if state.permissions else "(none)"),
        ("expires", _format_expiry(state.token_expires_at, now)),
    ]
    if token_path:
        rows.append(("file", token_path))

    for label, value in rows:
        line = Text()
        line.append("  ")
        line.append(label.upper().ljust(col_label), style=f"dim {palette.text_muted}")
        if label == "status":
            color = palette.granted if authenticated else palette.error
            line.append(value, style=f"bold {color}")
        else:
            line.append(value, style=palette.text_bright if authenticated else f"dim {palette.text}")
        console.print(line)

    console.print()
