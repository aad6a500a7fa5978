"""Command line access to the workout history.

Runs against the local database, mirroring to the remote session table
when ``DUNGYM_SUPABASE_URL``/``DUNGYM_SUPABASE_KEY`` and an access token
are configured (a ``.env`` file in the working directory is honoured).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from dungym import settings
from dungym.auth import TokenAuth
from dungym.exceptions import DungymError
from dungym.identifiers import IdentifierResolver
from dungym.local_store import LocalStore
from dungym.program import Program
from dungym.remote_store import RemoteStore
from dungym.repository import SessionRepository
from dungym import stats

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_repository(
    db_path: Path | str | None = None, program: Program | None = None
) -> SessionRepository:
    """Create the repository from settings and the environment."""

    program = program or Program()
    resolver = IdentifierResolver(program)
    local = LocalStore(db_path or settings.db_path(), resolver)
    remote = None
    config = settings.remote_config()
    if config is not None:
        remote = RemoteStore(
            config["url"],
            config["key"],
            TokenAuth(settings.access_token()),
            resolver,
            table=config["table"],
            timeout=settings.remote_timeout(),
        )
    else:
        logger.debug("Remote store not configured; running local-only")
    return SessionRepository(local, remote)


def _format_weight(weight: float) -> str:
    return f"{weight:g}"


# ----------------------------------------------------------------------
# Sub-commands
# ----------------------------------------------------------------------


def cmd_history(repo: SessionRepository, program: Program, args) -> int:
    sessions = repo.get_sessions()
    if args.limit is not None:
        sessions = sessions[: max(0, args.limit)]
    if not sessions:
        print("No workouts logged yet.")
        return EXIT_OK
    print("\n\n".join(stats.format_session_summary(s, program) for s in sessions))
    return EXIT_OK


def cmd_stats(repo: SessionRepository, program: Program, args) -> int:
    sessions = repo.get_sessions()
    streaks = stats.compute_streaks(sessions)
    print(f"Sessions:        {len(sessions)}")
    print(f"Current streak:  {streaks['current']}")
    print(f"Longest streak:  {streaks['longest']}")
    print(f"This week:       {streaks['this_week']}")
    print(f"This month:      {streaks['this_month']}")
    print(f"Avg duration:    {stats.format_duration(stats.average_duration(sessions))}")
    print(f"Total volume:    {stats.format_total_volume(stats.total_volume(sessions))}")
    for day_id, count in stats.day_distribution(sessions, program).items():
        print(f"{program.day_label(day_id) + ':':<17}{count}")
    return EXIT_OK


def cmd_prs(repo: SessionRepository, program: Program, args) -> int:
    records = stats.personal_records(repo.get_sessions())
    if not records:
        print("No weighted sets logged yet.")
        return EXIT_OK
    for record in records:
        reps = f" x {record['reps']}" if record["reps"] else ""
        print(
            f"{program.exercise_name(record['exercise'])}: "
            f"{_format_weight(record['weight'])} lb{reps} ({stats.format_date(record['date'])})"
        )
    return EXIT_OK


def cmd_export(repo: SessionRepository, program: Program, args) -> int:
    text = repo.export_sessions()
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print(f"Exported to {args.output}")
    else:
        print(text)
    return EXIT_OK


def cmd_import(repo: SessionRepository, program: Program, args) -> int:
    try:
        text = Path(args.file).read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Cannot read {args.file}: {exc}", file=sys.stderr)
        return EXIT_USAGE
    try:
        added = repo.local.import_sessions(text)
    except ValueError as exc:
        print(f"Invalid session file {args.file}: {exc}", file=sys.stderr)
        return EXIT_USAGE
    print(f"Imported {added} session{'s' if added != 1 else ''}")
    return EXIT_OK


def cmd_delete(repo: SessionRepository, program: Program, args) -> int:
    known = {s.get("id") for s in repo.get_sessions()}
    if args.id not in known:
        print(f"No session with id {args.id}", file=sys.stderr)
        return EXIT_FAILURE
    repo.delete_session(args.id)
    print(f"Deleted {args.id}")
    return EXIT_OK


def cmd_sync(repo: SessionRepository, program: Program, args) -> int:
    if repo.remote is None or not repo.remote.is_available():
        print("Remote store not available; set DUNGYM_SUPABASE_URL, "
              "DUNGYM_SUPABASE_KEY and DUNGYM_ACCESS_TOKEN", file=sys.stderr)
        return EXIT_FAILURE
    pushed = repo.sync()
    print(f"Pushed {pushed} session{'s' if pushed != 1 else ''}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dungym", description="Kettlebell workout log")
    parser.add_argument("--db", help="path to the local database")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    history = sub.add_parser("history", help="list logged workouts, newest first")
    history.add_argument("--limit", type=int, default=None)
    history.set_defaults(func=cmd_history)

    sub.add_parser("stats", help="streaks and totals").set_defaults(func=cmd_stats)
    sub.add_parser("prs", help="personal records").set_defaults(func=cmd_prs)

    export = sub.add_parser("export", help="write the history as JSON")
    export.add_argument("--output", "-o", help="file to write instead of stdout")
    export.set_defaults(func=cmd_export)

    imp = sub.add_parser("import", help="add sessions from an exported JSON file")
    imp.add_argument("file")
    imp.set_defaults(func=cmd_import)

    delete = sub.add_parser("delete", help="delete one session")
    delete.add_argument("id")
    delete.set_defaults(func=cmd_delete)

    sub.add_parser("sync", help="push local-only sessions to the remote store").set_defaults(
        func=cmd_sync
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    program = Program()
    try:
        repo = build_repository(args.db, program)
        return args.func(repo, program, args)
    except DungymError as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
