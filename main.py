"""
main.py — BlinkLoop application entry point.

Parses CLI args, loads configuration and the alphabet, attaches an eye
source, and runs the scan session with the Tkinter board (or headless).
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import traceback

_BANNER = r"""
  ___ _ _      _   _
 | _ ) (_)_ _ | |_| |   ___  ___ _ __
 | _ \ | | ' \| / / |__/ _ \/ _ \ '_ \
 |___/_|_|_||_|_\_\____\___/\___/ .__/
                                |_|
     Blink-driven scanning alphabet
"""


# ──────────────────────────────────────────────────────────────
# Argument parsing
# ──────────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="blinkloop",
        description="BlinkLoop — select characters from a scanning grid by winking",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument(
        "--mode",
        choices=["sim", "script", "webcam"],
        default="sim",
        help="Eye input: keyboard simulator, scripted demo, or live webcam",
    )
    p.add_argument(
        "--train",
        action="store_true",
        help="Training mode: guide the user through the training words",
    )
    p.add_argument(
        "--speed",
        type=int,
        default=None,
        help="Tick interval in ms (overrides scan.interval_ms)",
    )
    p.add_argument(
        "--record",
        action="store_true",
        help="Write the frame log for this session",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to blinkloop.yaml (auto-discovered if omitted)",
    )
    p.add_argument(
        "--no-gui",
        action="store_true",
        help="Run headless — no Tkinter window",
    )
    p.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Headless only: stop after this many seconds",
    )
    p.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARN"],
        default=None,
        help="Minimum log level for console output (overrides logging.level)",
    )
    return p


# ──────────────────────────────────────────────────────────────
# Wiring helpers
# ──────────────────────────────────────────────────────────────

def _build_source(mode: str, config):
    """Instantiate the eye source for *mode*."""
    if mode == "webcam":
        from blinkloop.gaze.tracker import EyeTracker
        return EyeTracker(config.camera, config.blink)
    from blinkloop.gaze.simulator import KeyboardSimulator, ScriptedEyeSource
    if mode == "script":
        return ScriptedEyeSource(config.blink)
    return KeyboardSimulator(config.blink)


def _log_tick(session) -> None:
    """Headless tick printer."""
    log = logging.getLogger("blinkloop.headless")

    def _on_tick(state) -> None:
        char = session.alphabet.chars[state.highlighted_index]
        cursor = session.cursor
        log.info(
            "tick=%d index=%d char=%r pending=%s%s",
            state.tick_index,
            state.highlighted_index,
            char.label,
            state.pending_command.value,
            f" word={cursor.word_index} char={cursor.char_index}" if cursor else "",
        )

    session.subscribe_tick(_on_tick)


def _run_headless(session, duration: float | None) -> int:
    """Run until *duration* elapses or Ctrl-C."""
    _log_tick(session)
    done = threading.Event()
    session.start()
    try:
        done.wait(timeout=duration)
    except KeyboardInterrupt:
        pass
    finally:
        session.stop()
    return 0


def _run_with_gui(session, source) -> int:
    """Run the Tkinter board in the main thread; the clock ticks in the background."""
    import tkinter as tk
    from blinkloop.output.display import ScanBoardWindow

    root = tk.Tk()
    window = ScanBoardWindow(
        root,
        session,
        on_key=getattr(source, "inject_key", None),
    )

    def _on_close() -> None:
        session.stop()
        root.destroy()

    root.protocol("WM_DELETE_WINDOW", _on_close)
    session.start()
    try:
        window.run()
    except KeyboardInterrupt:
        _on_close()
    return 0


# ──────────────────────────────────────────────────────────────
# Main
# ──────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    """Application entry point. Returns process exit code."""
    print(_BANNER)
    args = _build_parser().parse_args(argv)

    from blinkloop.core.config import ConfigurationError, load_config
    from blinkloop.core.logger import configure_logger

    try:
        config = load_config(args.config)
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    level_name = (args.log_level or config.logging.level).upper()
    level_map = {"DEBUG": logging.DEBUG, "INFO": logging.INFO, "WARN": logging.WARNING,
                 "WARNING": logging.WARNING, "ERROR": logging.ERROR}
    logging.basicConfig(
        level=level_map.get(level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )

    log = configure_logger(config.logging.log_dir)
    log.info("main", "args_parsed", {
        "mode": args.mode,
        "train": args.train,
        "speed": args.speed,
        "record": args.record,
        "no_gui": args.no_gui,
    })

    from blinkloop.core.session import ScanSession

    try:
        session = ScanSession.from_config(
            config,
            training=args.train or None,
            record=args.record or None,
        )
        if args.speed is not None:
            session.set_interval(args.speed)
    except (ConfigurationError, FileNotFoundError) as exc:
        log.critical("main", "configuration_error", {"error": str(exc)})
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    exit_code = 0
    try:
        source = _build_source(args.mode, config)
        session.attach_source(source)
        if session.recorder is not None:
            print(f"[INFO] Recording frame log → {session.recorder.path}")
        if args.no_gui:
            print("[INFO] Running headless (--no-gui)")
            exit_code = _run_headless(session, args.duration)
        else:
            print(f"[INFO] Starting GUI — mode={args.mode}")
            exit_code = _run_with_gui(session, source)
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted — shutting down…")
    except Exception:                              # noqa: BLE001
        tb = traceback.format_exc()
        print(tb, file=sys.stderr)
        log.critical("main", "unhandled_exception", {"traceback": tb})
        exit_code = 1
    finally:
        session.stop()
        recorder = session.recorder
        if recorder is not None and recorder.error is not None:
            print(f"[ERROR] Frame log write failed: {recorder.error}", file=sys.stderr)
            exit_code = exit_code or 1
        log.flush()

    print(f"[INFO] BlinkLoop exited with code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
