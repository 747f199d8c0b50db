"""Command line entry point for the spreadsheet sync engine."""
from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from core.settings import LOG_DIR
from services.google_auth import GoogleAuth
from services.local_state import LocalState
from services.scheduler import ThreadingScheduler
from services.sync_orchestrator import SyncOrchestrator
from services.transport_factory import build_transport, transport_factory
from storage.config import load_config, update_config
from storage.state_store import StateStore, init_state_store
from models.sync_session import METHOD_NONE, choose_method


LOG_PATH = LOG_DIR / "cli.log"


def _setup_logging(log_path: Path, verbose: bool) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_path),
        filemode="a",
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def _signed_in(auth: GoogleAuth, sheet_id: Optional[str]) -> bool:
    return bool(sheet_id) and auth.is_signed_in()


def build_orchestrator(auth: GoogleAuth) -> SyncOrchestrator:
    init_state_store()
    state = LocalState(StateStore())
    state.load()
    config = load_config()
    orchestrator = SyncOrchestrator(state, ThreadingScheduler(), transport_factory(auth.get_credentials))
    orchestrator.configure(config.apps_script_url, config.sheet_id, _signed_in(auth, config.sheet_id))
    return orchestrator


def cmd_configure(args, auth: GoogleAuth) -> int:
    cfg = update_config(sheet_id=args.sheet_id, apps_script_url=args.script_url)
    if cfg.sheet_id and not cfg.apps_script_url and args.sign_in:
        auth.ensure_credentials()
    print(f"sheet_id={cfg.sheet_id or '-'} apps_script_url={cfg.apps_script_url or '-'}")
    return 0


def cmd_check(args, auth: GoogleAuth) -> int:
    config = load_config()
    method, target = choose_method(config.apps_script_url, config.sheet_id, _signed_in(auth, config.sheet_id))
    if method == METHOD_NONE:
        print("No sync target configured (or not signed in).")
        return 1
    transport = build_transport(method, target, auth.get_credentials)
    ok = transport.test_connection()
    print(f"{method}: {'ok' if ok else 'unreachable'}")
    return 0 if ok else 1


def _run_once(orchestrator: SyncOrchestrator, push: bool) -> int:
    orchestrator.shutdown()
    if not orchestrator.manual_pull():
        print(f"Pull failed: {orchestrator.session.error_message or 'not configured'}")
        return 1
    if push and not orchestrator.manual_push():
        print(f"Push failed: {orchestrator.session.error_message or 'blocked'}")
        return 1
    print(f"{orchestrator.session.status} at {orchestrator.session.last_sync_time}")
    return 0


def cmd_pull(args, auth: GoogleAuth) -> int:
    return _run_once(build_orchestrator(auth), push=False)


def cmd_push(args, auth: GoogleAuth) -> int:
    return _run_once(build_orchestrator(auth), push=True)


def cmd_watch(args, auth: GoogleAuth) -> int:
    orchestrator = build_orchestrator(auth)
    if not orchestrator.session.configured:
        print(orchestrator.session.error_message or "No sync target configured.")
        return 1
    print("Watching; press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(args.interval)
            print(orchestrator.snapshot())
    except KeyboardInterrupt:
        pass
    finally:
        orchestrator.shutdown()
        if orchestrator.session.dirty:
            orchestrator.manual_push()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__ or "")
    parser.add_argument("--log", type=Path, default=LOG_PATH, help="Path to a log file (default: %(default)s)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    configure = sub.add_parser("configure", help="Set the spreadsheet id and/or Apps Script URL")
    configure.add_argument("--sheet-id", default=None)
    configure.add_argument("--script-url", default=None)
    configure.add_argument("--sign-in", action="store_true", help="Run the Google consent flow now")
    configure.set_defaults(func=cmd_configure)

    sub.add_parser("check", help="Test the connection to the configured target").set_defaults(func=cmd_check)
    sub.add_parser("pull", help="Pull and merge remote data once").set_defaults(func=cmd_pull)
    sub.add_parser("push", help="Pull, merge and push once").set_defaults(func=cmd_push)

    watch = sub.add_parser("watch", help="Keep syncing in the background")
    watch.add_argument("--interval", type=float, default=30.0, help="Status print interval in seconds")
    watch.set_defaults(func=cmd_watch)

    args = parser.parse_args(argv)
    _setup_logging(args.log, args.verbose)
    try:
        return args.func(args, GoogleAuth())
    except Exception as exc:  # pragma: no cover - CLI entry point
        logging.exception("Command %s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
