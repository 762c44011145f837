from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from livesub.contracts import CaptionEvent

try:
    from PyQt6 import QtCore, QtGui, QtWidgets
    _PYQT_IMPORT_ERROR: ModuleNotFoundError | None = None
except ModuleNotFoundError as e:  # pragma: no cover - import guard path
    QtCore = None  # type: ignore[assignment]
    QtGui = None  # type: ignore[assignment]
    QtWidgets = None  # type: ignore[assignment]
    _PYQT_IMPORT_ERROR = e


CONNECTING_TEXT = "Connecting to live session..."
MIN_FONT_TARGET = 14
MIN_FONT_SOURCE = 10
SCREEN_MARGIN = 40

_HOTKEY_ALIASES = {
    "escape": "esc",
    "plus": "+",
    "equal": "+",
    "=": "+",
    "minus": "-",
    "underscore": "-",
    "_": "-",
}


@dataclass(frozen=True)
class CaptionLine:
    source: str
    target: str
    is_final: bool = False

    @classmethod
    def from_event(cls, event: CaptionEvent) -> "CaptionLine":
        return cls(source=event.source_text, target=event.target_text, is_final=event.is_final)


@dataclass
class OverlayConfig:
    show_source: bool = True
    max_lines: int = 3
    font_size_target: int = 28
    font_size_source: int = 16
    padding_px: int = 14
    text_selectable: bool = False
    hotkey_toggle_source: str = "H"
    hotkey_font_inc: str = "+"
    hotkey_font_dec: str = "-"
    hotkey_pause: str = "P"
    hotkey_quit: str = "Esc"
    bg_opacity: int = 66
    position_preset: str = "bottom_center"


def merge_caption_line(
    lines: List[CaptionLine],
    new_line: CaptionLine,
    *,
    max_lines: int,
) -> List[CaptionLine]:
    """
    The last line is the live caption while it is not final: updates replace it.
    A final line stays in history and the next update opens a new live line.
    """
    keep = max(1, int(max_lines))
    out = list(lines)
    if not (new_line.source or new_line.target).strip():
        return out[-keep:]
    if out and out[-1] == new_line:
        return out[-keep:]
    if out and not out[-1].is_final:
        out[-1] = new_line
    else:
        out.append(new_line)
    return out[-keep:]


def _escape(text: str) -> str:
    return (text or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def render_lines_to_html(lines: List[CaptionLine], cfg: OverlayConfig) -> str:
    # newest last (bottom)
    parts: List[str] = []
    for ln in lines[-cfg.max_lines:]:
        source = _escape(ln.source)
        target = _escape(ln.target)
        # pending lines are dimmed until both sides are final
        weight = 600 if ln.is_final else 500
        opacity = "1.0" if ln.is_final else "0.9"

        if cfg.show_source and source:
            parts.append(
                f"<div style='font-size:{cfg.font_size_source}px; opacity:0.85; margin-bottom:2px;'>{source}</div>"
            )
        if target:
            parts.append(
                f"<div style='font-size:{cfg.font_size_target}px; font-weight:{weight}; "
                f"opacity:{opacity};'>{target}</div>"
            )
        parts.append("<div style='height:10px;'></div>")
    return "".join(parts).strip()


def normalize_hotkey(value: str) -> str:
    """Portable key text ("Escape", "Plus", "h") -> the form hotkeys are compared in."""
    key = str(value or "").strip().lower()
    return _HOTKEY_ALIASES.get(key, key)


def panel_alpha(opacity_percent: int) -> int:
    return max(0, min(255, int(round(opacity_percent / 100.0 * 255.0))))


def step_font_sizes(cfg: OverlayConfig, direction: int) -> None:
    if direction > 0:
        cfg.font_size_target += 2
        cfg.font_size_source += 1
    else:
        cfg.font_size_target = max(MIN_FONT_TARGET, cfg.font_size_target - 2)
        cfg.font_size_source = max(MIN_FONT_SOURCE, cfg.font_size_source - 1)


def preset_origin(
    preset: str,
    area: Tuple[int, int, int, int],
    size: Tuple[int, int],
    margin: int = SCREEN_MARGIN,
) -> Optional[Tuple[int, int]]:
    """
    Top-left corner for a position preset inside area (left, top, width, height).
    None for "custom": the window stays where the user dragged it.
    """
    preset = str(preset or "bottom_center").lower()
    if preset == "custom":
        return None
    left, top, width, height = area
    w, h = size
    x = left + max(0, (width - w) // 2)
    y = top + max(0, height - h - margin)
    if preset == "bottom_left":
        x = left + margin
    elif preset == "top_center":
        y = top + margin
    return x, y


if QtWidgets is not None:
    class CaptionOverlay(QtWidgets.QWidget):
        """
        Frameless always-on-top caption panel. Drag anywhere on it to move.
        Hotkeys come from OverlayConfig (toggle source, font +/-, pause, quit).
        """

        escape_requested = QtCore.pyqtSignal()

        def __init__(self, cfg: OverlayConfig | None = None):
            super().__init__()
            self.cfg = cfg or OverlayConfig()
            self._paused = False
            self._lines: List[CaptionLine] = []
            self._drag_pos: Optional[QtCore.QPoint] = None

            self.setWindowFlags(
                QtCore.Qt.WindowType.FramelessWindowHint
                | QtCore.Qt.WindowType.WindowStaysOnTopHint
                | QtCore.Qt.WindowType.Tool
            )
            self.setAttribute(QtCore.Qt.WidgetAttribute.WA_TranslucentBackground, True)

            self.panel = QtWidgets.QFrame(self)
            self.panel.setStyleSheet(
                f"QFrame {{ background-color: rgba(0, 0, 0, {panel_alpha(self.cfg.bg_opacity)}); "
                "border-radius: 16px; }"
            )

            self.status = QtWidgets.QLabel(CONNECTING_TEXT, self.panel)
            self.status.setStyleSheet("color: rgba(167, 232, 255, 220); font-size: 13px;")
            self.status.hide()

            self.label = QtWidgets.QTextBrowser(self.panel)
            self.label.setReadOnly(True)
            self.label.setFocusPolicy(QtCore.Qt.FocusPolicy.NoFocus)
            self.label.setStyleSheet("QTextBrowser { background: transparent; border: none; color: white; }")
            self.label.setVerticalScrollBarPolicy(QtCore.Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
            self.label.setHorizontalScrollBarPolicy(QtCore.Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
            if self.cfg.text_selectable:
                self.label.setTextInteractionFlags(
                    QtCore.Qt.TextInteractionFlag.TextSelectableByMouse
                    | QtCore.Qt.TextInteractionFlag.TextSelectableByKeyboard
                )
            else:
                self.label.setTextInteractionFlags(QtCore.Qt.TextInteractionFlag.NoTextInteraction)

            pad = self.cfg.padding_px
            layout = QtWidgets.QVBoxLayout(self.panel)
            layout.setContentsMargins(pad, pad, pad, pad)
            layout.setSpacing(6)
            layout.addWidget(self.status)
            layout.addWidget(self.label)

            outer = QtWidgets.QVBoxLayout(self)
            outer.setContentsMargins(0, 0, 0, 0)
            outer.addWidget(self.panel)

            self._hotkeys: Dict[str, Callable[[], None]] = {
                normalize_hotkey(self.cfg.hotkey_quit): self.escape_requested.emit,
                normalize_hotkey(self.cfg.hotkey_toggle_source): self._toggle_source,
                normalize_hotkey(self.cfg.hotkey_font_inc): lambda: self._step_font(1),
                normalize_hotkey(self.cfg.hotkey_font_dec): lambda: self._step_font(-1),
                normalize_hotkey(self.cfg.hotkey_pause): lambda: self.set_paused(not self._paused),
            }
            self._hotkeys.pop("", None)

            self.resize(900, 220)
            self._place()
            self.panel.installEventFilter(self)
            self.label.viewport().installEventFilter(self)
            self._refresh()

        def set_paused(self, paused: bool) -> None:
            self._paused = paused

        def show_caption(self, line: CaptionLine) -> None:
            if self._paused:
                return
            self._lines = merge_caption_line(self._lines, line, max_lines=self.cfg.max_lines)
            self._refresh()

        def clear_captions(self) -> None:
            self._lines = []
            self._refresh()

        def set_loading(self, loading: bool, message: str = CONNECTING_TEXT) -> None:
            self.status.setText(str(message or CONNECTING_TEXT))
            self.status.setVisible(loading)

        def _refresh(self) -> None:
            self.label.setHtml(render_lines_to_html(self._lines, self.cfg))
            bar = self.label.verticalScrollBar()
            bar.setValue(bar.maximum())

        def _toggle_source(self) -> None:
            self.cfg.show_source = not self.cfg.show_source
            self._refresh()

        def _step_font(self, direction: int) -> None:
            step_font_sizes(self.cfg, direction)
            self._refresh()

        def _place(self) -> None:
            screen = QtGui.QGuiApplication.primaryScreen()
            if screen is None:
                return
            geom = screen.availableGeometry()
            origin = preset_origin(
                self.cfg.position_preset,
                (geom.left(), geom.top(), geom.width(), geom.height()),
                (self.width(), self.height()),
            )
            if origin is not None:
                self.move(*origin)

        def eventFilter(self, obj: QtCore.QObject, ev: QtCore.QEvent) -> bool:
            if isinstance(ev, QtGui.QMouseEvent):
                kind = ev.type()
                left = QtCore.Qt.MouseButton.LeftButton
                if kind == QtCore.QEvent.Type.MouseButtonPress and ev.button() == left:
                    self._drag_pos = ev.globalPosition().toPoint() - self.frameGeometry().topLeft()
                    return True
                if kind == QtCore.QEvent.Type.MouseMove and self._drag_pos is not None and ev.buttons() & left:
                    self.move(ev.globalPosition().toPoint() - self._drag_pos)
                    return True
                if kind == QtCore.QEvent.Type.MouseButtonRelease and ev.button() == left:
                    self._drag_pos = None
                    return True
            return super().eventFilter(obj, ev)

        def keyPressEvent(self, ev: QtGui.QKeyEvent) -> None:
            seq = QtGui.QKeySequence(ev.keyCombination())
            text = seq.toString(QtGui.QKeySequence.SequenceFormat.PortableText) or ev.text()
            action = self._hotkeys.get(normalize_hotkey(text))
            if action is None:
                super().keyPressEvent(ev)
                return
            action()
else:
    class CaptionOverlay:
        def __init__(self, cfg: OverlayConfig | None = None) -> None:
            del cfg
            raise ModuleNotFoundError(
                "PyQt6 is required for CaptionOverlay. Install with: python -m pip install PyQt6"
            ) from _PYQT_IMPORT_ERROR
