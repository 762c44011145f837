from __future__ import annotations

import os
import signal
import sys
import webbrowser
from concurrent.futures import Future

from livesub.app.config import resolve_args
from livesub.app.logging_setup import setup_app_logger
from livesub.app.runtime import LiveRuntime, _console_line, _drain_event_bus
from livesub.app.services import build_live_caption_services
from livesub.audio.mic import MicError, SoundDeviceMicSource
from livesub.contracts import CaptionEvent, ErrorEvent, LiveEvent, StatusEvent
from livesub.ui.bridge import EventBus


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, log_dir, log_path = setup_app_logger(debug=bool(args.debug), console=bool(args.print_console))
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        try:
            print(SoundDeviceMicSource.list_devices())
        except MicError as e:
            print(str(e), file=sys.stderr)
            return 1
        return 0

    from PyQt6 import QtCore, QtWidgets
    from livesub.app.main_window_qt import MainWindow
    from livesub.ui.overlay_qt import CaptionLine, CaptionOverlay, OverlayConfig

    app = QtWidgets.QApplication(sys.argv)

    overlay = CaptionOverlay(
        OverlayConfig(
            show_source=bool(args.show_source),
            max_lines=max(1, int(args.max_lines)),
            font_size_target=max(10, int(args.font_size_target)),
            font_size_source=max(8, int(args.font_size_source)),
            padding_px=max(0, int(args.padding_px)),
            text_selectable=bool(args.overlay_text_selectable),
            hotkey_toggle_source=str(args.hotkey_toggle_source),
            hotkey_font_inc=str(args.hotkey_font_inc),
            hotkey_font_dec=str(args.hotkey_font_dec),
            hotkey_pause=str(args.hotkey_pause),
            hotkey_quit=str(args.hotkey_quit),
            bg_opacity=max(0, min(100, int(args.overlay_opacity))),
            position_preset=str(args.overlay_position),
        )
    )
    overlay.hide()

    services = build_live_caption_services(args, logger=logger)
    settings = services.session.settings
    main_window = MainWindow(
        language_pair=f"{settings.source_lang} -> {settings.target_lang}",
        model_line=f"{settings.auth_mode} | {settings.primary_model}",
    )

    bus = EventBus(maxsize=max(1, int(args.queue_maxsize)))
    runtime = LiveRuntime(services.session, bus, mic=services.mic, logger=logger.getChild("runtime"))
    pending_start: Future | None = None
    running = False

    def _set_running(value: bool) -> None:
        nonlocal running
        running = value
        main_window.set_running(value)
        if act_start_stop is not None:
            act_start_stop.setText("Stop" if value else "Start")

    def _start_from_ui() -> None:
        nonlocal pending_start
        if running:
            return
        overlay.clear_captions()
        overlay.set_paused(False)
        overlay.set_loading(True)
        overlay.show()
        overlay.activateWindow()
        _set_running(True)
        pending_start = runtime.request_start()
        logger.info("runtime_start_requested")

    def _stop_from_ui() -> None:
        nonlocal pending_start
        pending_start = None
        runtime.end_session()
        overlay.set_loading(False)
        overlay.set_paused(False)
        overlay.hide()
        main_window.set_meter_level(0)
        _set_running(False)
        main_window.show()
        main_window.activateWindow()
        logger.info("runtime_stopped")

    def _open_logs_folder() -> None:
        try:
            if hasattr(os, "startfile"):
                os.startfile(str(log_dir))  # type: ignore[attr-defined]
                opened = True
            else:
                opened = webbrowser.open(str(log_dir))
            logger.info("open_logs", extra={"log_dir": str(log_dir), "opened": bool(opened)})
        except Exception:
            logger.exception("open_logs_failed", extra={"log_dir": str(log_dir)})

    def _handle_event(event: LiveEvent) -> None:
        if isinstance(event, CaptionEvent):
            overlay.show_caption(CaptionLine.from_event(event))
            if args.print_console:
                line = _console_line(event)
                if line:
                    print(line)
            return
        if isinstance(event, StatusEvent):
            main_window.set_status(event.status, event.message)
            overlay.set_loading(event.status == "connecting", event.message)
            if event.status == "closed" and running:
                runtime.end_session()
                _set_running(False)
                overlay.hide()
                main_window.show()
                main_window.activateWindow()
            return
        if isinstance(event, ErrorEvent):
            main_window.show_error(event.message)
            return
        # Debug events are already in the log file.

    tray = None
    act_start_stop = None
    if QtWidgets.QSystemTrayIcon.isSystemTrayAvailable():
        icon = app.style().standardIcon(QtWidgets.QStyle.StandardPixmap.SP_ComputerIcon)
        tray = QtWidgets.QSystemTrayIcon(icon, app)
        tray.setToolTip("LiveSub")
        menu = QtWidgets.QMenu()
        act_show_app = menu.addAction("Show App")
        menu.addSeparator()
        act_start_stop = menu.addAction("Start")
        act_open_logs = menu.addAction("Open Logs")
        menu.addSeparator()
        act_quit = menu.addAction("Quit")
        tray.setContextMenu(menu)

        def _on_show_app() -> None:
            main_window.show()
            main_window.activateWindow()

        act_show_app.triggered.connect(_on_show_app)
        act_start_stop.triggered.connect(lambda: _stop_from_ui() if running else _start_from_ui())
        act_open_logs.triggered.connect(_open_logs_folder)
        act_quit.triggered.connect(app.quit)
        tray.show()

    main_window.run_requested.connect(_start_from_ui)
    main_window.stop_requested.connect(_stop_from_ui)
    overlay.escape_requested.connect(_stop_from_ui)

    timer = QtCore.QTimer()

    def _on_tick() -> None:
        nonlocal pending_start
        _drain_event_bus(bus, _handle_event, max(1, int(args.max_updates_per_tick)))
        main_window.set_meter_level(runtime.mic_level if running else 0)

        if pending_start is not None and pending_start.done():
            future, pending_start = pending_start, None
            try:
                ok = bool(future.result()["ok"])
            except Exception as e:
                logger.exception("runtime_start_failed")
                main_window.show_error(str(e))
                ok = False
            logger.info("runtime_start_result", extra={"ok": ok})
            if not ok and running:
                _stop_from_ui()

    timer.timeout.connect(_on_tick)
    timer.start(max(10, int(args.poll_ms)))

    def _on_about_to_quit() -> None:
        logger.info("app_quit")
        timer.stop()
        runtime.shutdown()
        if tray is not None:
            tray.hide()

    app.aboutToQuit.connect(_on_about_to_quit)
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    main_window.show()

    print("LiveSub ready. Press Start to begin live captions.")
    print(f"Logs: {log_path}")
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
