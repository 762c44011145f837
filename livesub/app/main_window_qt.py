from __future__ import annotations

from livesub.app.diagnostics import hint_for_exception, summarize_exception

try:
    from PyQt6 import QtCore, QtWidgets

    _PYQT_IMPORT_ERROR: ModuleNotFoundError | None = None
except ModuleNotFoundError as e:  # pragma: no cover - import guard path
    QtCore = None  # type: ignore[assignment]
    QtWidgets = None  # type: ignore[assignment]
    _PYQT_IMPORT_ERROR = e


_STATUS_LABELS = {
    "idle": "Idle",
    "connecting": "Connecting",
    "ready": "Live",
    "closed": "Closed",
    "error": "Error",
}

_STYLE = """
QLabel#title { font-size: 28px; font-weight: 700; }
QLabel#info { color: #5b6670; }
QLabel#error { color: #c0392b; }
"""


def status_line(status: str, message: str = "") -> str:
    label = _STATUS_LABELS.get(str(status or "").lower(), str(status or "").title() or "Idle")
    message = str(message or "").strip()
    return f"{label}: {message}" if message else label


def error_lines(message: str) -> tuple[str, str]:
    summary = summarize_exception(message)
    return summary, hint_for_exception(summary)


def info_line(language_pair: str, model_line: str) -> str:
    return " | ".join(p for p in (language_pair, model_line) if p)


if QtWidgets is not None:
    class MainWindow(QtWidgets.QMainWindow):
        """Start/stop control with the session status, the last error and a mic meter."""

        run_requested = QtCore.pyqtSignal()
        stop_requested = QtCore.pyqtSignal()

        def __init__(self, *, language_pair: str = "", model_line: str = "") -> None:
            super().__init__()
            self.setWindowTitle("LiveSub")
            self.resize(560, 300)
            self.setStyleSheet(_STYLE)
            self._running = False

            root = QtWidgets.QWidget(self)
            self.setCentralWidget(root)
            lay = QtWidgets.QVBoxLayout(root)
            lay.setContentsMargins(20, 18, 20, 18)
            lay.setSpacing(12)

            title = QtWidgets.QLabel("LiveSub", root)
            title.setObjectName("title")
            self.info_label = QtWidgets.QLabel(info_line(language_pair, model_line), root)
            self.info_label.setObjectName("info")
            self.status_label = QtWidgets.QLabel(status_line("idle"), root)
            self.status_label.setWordWrap(True)
            self.error_label = QtWidgets.QLabel("", root)
            self.error_label.setObjectName("error")
            self.error_label.setWordWrap(True)
            self.error_label.hide()

            self.btn_run = QtWidgets.QPushButton("Start", root)
            self.btn_run.clicked.connect(self._on_run_clicked)

            self.meter = QtWidgets.QProgressBar(root)
            self.meter.setRange(0, 100)
            self.meter.setTextVisible(False)

            for widget in (title, self.info_label, self.status_label, self.error_label, self.btn_run):
                lay.addWidget(widget)
            lay.addWidget(QtWidgets.QLabel("Mic level", root))
            lay.addWidget(self.meter)
            lay.addStretch(1)

        def _on_run_clicked(self) -> None:
            (self.stop_requested if self._running else self.run_requested).emit()

        def set_running(self, running: bool) -> None:
            self._running = running
            self.btn_run.setText("Stop" if running else "Start")

        def set_status(self, status: str, message: str = "") -> None:
            self.status_label.setText(status_line(status, message))
            if status == "connecting":
                self.clear_error()

        def show_error(self, message: str) -> None:
            summary, hint = error_lines(message)
            self.error_label.setText(f"{summary}\n{hint}")
            self.error_label.show()

        def clear_error(self) -> None:
            self.error_label.clear()
            self.error_label.hide()

        def set_meter_level(self, level_0_to_100: int) -> None:
            self.meter.setValue(max(0, min(100, int(level_0_to_100))))
else:
    class MainWindow:
        def __init__(self, **kwargs) -> None:
            del kwargs
            raise ModuleNotFoundError(
                "PyQt6 is required for MainWindow. Install with: python -m pip install PyQt6"
            ) from _PYQT_IMPORT_ERROR
