"""Frame protocol markup: the `fc:frame` meta tags a frame client reads."""

from dataclasses import dataclass
from html import escape
from typing import Optional

from chessgrid.api.models import GameView
from chessgrid.core.shared_types import Color, Status

APP_TITLE = "ChessGrid"
MOVE_INPUT_HINT = "Enter move (e.g., e2e4)"


@dataclass(frozen=True)
class FrameButton:
    label: str
    action: str = "post"
    target: Optional[str] = None


def _vs_label(view: GameView) -> str:
    white = view.players.get(Color.WHITE)
    black = view.players.get(Color.BLACK)
    return f"{white.name if white else 'White'} vs {black.name if black else 'Black'}"


def _is_frame_users_turn(view: GameView, fid: Optional[str]) -> bool:
    if fid is None:
        return False
    to_move = view.players.get(view.current_player)
    return to_move is not None and to_move.id == fid


def frame_layout(
    view: GameView, share_url: str, fid: Optional[str] = None
) -> tuple[str, list[FrameButton], Optional[str]]:
    """Title, buttons and text input for the game's current status."""
    vs_label = _vs_label(view)
    open_in_browser = FrameButton("Open in Browser", action="link", target=share_url)

    if view.status == Status.WAITING:
        title = f"{APP_TITLE} - Waiting ({vs_label})"
        if not all(view.available_colors.values()):
            title += " (1/2 joined)"
        buttons = [
            FrameButton("Join as White"),
            FrameButton("Join as Black"),
            FrameButton("Play Solo"),
            open_in_browser,
        ]
        return title, buttons, None

    if view.status == Status.ACTIVE:
        title = f"{APP_TITLE} - {view.current_player.value.capitalize()} to Move ({vs_label})"
        if fid is not None and not _is_frame_users_turn(view, fid):
            title += " (Waiting...)"
        if view.is_check:
            title += " - CHECK!"
        buttons = [
            FrameButton("Make Move"),
            FrameButton("New Game"),
            FrameButton("Resign"),
            open_in_browser,
        ]
        return title, buttons, MOVE_INPUT_HINT

    if view.is_checkmate:
        title = f"{APP_TITLE} - Checkmate ({vs_label})"
    elif view.is_draw:
        title = f"{APP_TITLE} - Draw ({vs_label})"
    else:
        title = f"{APP_TITLE} - Game Finished ({vs_label})"
    return title, [FrameButton("New Game"), open_in_browser], None


def render_frame_html(
    image_url: str,
    buttons: list[FrameButton],
    post_url: str,
    state: Optional[str] = None,
    text_input: Optional[str] = None,
    title: Optional[str] = None,
) -> str:
    """`state` is expected URL-encoded already."""
    meta = [
        ("fc:frame", "vNext"),
        ("fc:frame:image", image_url),
        ("og:image", image_url),
    ]
    if title:
        meta.append(("og:title", title))
    if text_input:
        meta.append(("fc:frame:input:text", text_input))
    for index, button in enumerate(buttons, start=1):
        meta.append((f"fc:frame:button:{index}", button.label))
        meta.append((f"fc:frame:button:{index}:action", button.action))
        if button.target:
            meta.append((f"fc:frame:button:{index}:target", button.target))
    meta.append(("fc:frame:post_url", post_url))
    if state:
        meta.append(("fc:frame:state", state))

    tags = "\n".join(
        f'    <meta property="{escape(prop)}" content="{escape(content)}"/>'
        for prop, content in meta
    )
    return f"""<!DOCTYPE html>
<html>
<head>
{tags}
    <title>{APP_TITLE} - Farcaster Chess</title>
</head>
<body>
    <h1>{APP_TITLE} - Play Chess on Farcaster!</h1>
    <p>This is a Farcaster Frame. View it on Warpcast or another Farcaster client.</p>
</body>
</html>"""
