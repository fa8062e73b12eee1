from __future__ import annotations

"""
tool.py — command-line entry point (tuf-tracker).

Commands:
- scrape   : scrape one or more identifiers and print the profiles
- batch    : scrape the whole roster (serialized, throttled, Ctrl-C stops between students)
- roster   : add / list / remove students
- show     : print the stored profile of a student
- stats    : class statistics + leaderboard
- export   : stored profiles -> CSV / JSON
- extract  : run the extractor on a saved HTML page (no network)
- synth    : print the deterministic synthetic profile of an identifier

Profiles go to stdout as JSON, logs go to stderr.
"""

import argparse
import dataclasses
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Optional, Sequence

from .config import TrackerConfig, load_config
from .errors import CliError, ConfigError, InvalidIdentifierError, validate_identifier
from .export_csv import profiles_to_csv, profiles_to_json
from .extractors import extract
from .logging_setup import setup_logging
from .models import Profile, RawDocument
from .overrides import load_override_table
from .pipeline import ProfileScraper
from .reconcile import reconcile
from .storage_sqlite import ProfileStore
from .summary import class_statistics, leaderboard
from .synthetic import SyntheticGenerator

logger = logging.getLogger(__name__)


# ----------------------------
# Utilities
# ----------------------------

def _pretty(obj: Any, pretty: bool) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=(2 if pretty else None))


def _config(args: argparse.Namespace) -> TrackerConfig:
    cfg = load_config(args.config)
    changes: dict[str, Any] = {}
    if args.db:
        changes["db_path"] = args.db
    if args.transport:
        changes["transport"] = args.transport
    if args.log_level:
        changes["log_level"] = args.log_level
    if args.log_file:
        changes["log_file"] = args.log_file
    return dataclasses.replace(cfg, **changes) if changes else cfg


def _read_roster_file(path: str) -> list[str]:
    p = Path(path)
    if not p.is_file():
        raise CliError(f"roster file not found: {path}")
    out: list[str] = []
    for line in p.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if s and not s.startswith("#"):
            out.append(s)
    return out


# ----------------------------
# Commands
# ----------------------------

def cmd_scrape(args: argparse.Namespace) -> int:
    cfg = args.cfg
    profiles: list[Profile] = []
    with ProfileScraper.from_config(cfg) as scraper:
        report = scraper.scrape_many(args.identifiers, delay=args.delay)
        profiles = report.profiles
    if args.save:
        run_id = ProfileStore.new_run_id()
        with ProfileStore(cfg.db_path) as store:
            for p in profiles:
                store.save_profile(p, run_id=run_id)
    payload: Any = profiles[0].to_dict() if len(profiles) == 1 else [p.to_dict() for p in profiles]
    print(_pretty(payload, args.pretty))
    return 0


def cmd_batch(args: argparse.Namespace) -> int:
    cfg = args.cfg
    with ProfileStore(cfg.db_path) as store:
        if args.roster:
            identifiers = _read_roster_file(args.roster)
        else:
            identifiers = [s.identifier for s in store.list_students()]
        if not identifiers:
            raise CliError("roster is empty: add students with 'roster add' or pass --roster FILE")

        cancel = threading.Event()
        run_id = store.new_run_id()

        def _on_sigint(signum, frame) -> None:
            logger.warning("interrupt received; stopping after the current student")
            cancel.set()

        prev = signal.signal(signal.SIGINT, _on_sigint)
        try:
            with ProfileScraper.from_config(cfg) as scraper:
                report = scraper.scrape_many(
                    identifiers,
                    delay=args.delay,
                    cancel=cancel,
                    on_profile=lambda p: store.save_profile(p, run_id=run_id),
                )
        finally:
            signal.signal(signal.SIGINT, prev)

    out = report.to_dict()
    out["runId"] = run_id
    print(_pretty(out, args.pretty))
    return 130 if report.cancelled else 0


def cmd_roster_add(args: argparse.Namespace) -> int:
    ident = validate_identifier(args.identifier)
    with ProfileStore(args.cfg.db_path) as store:
        added = store.add_student(ident, args.name)
    print(_pretty({"identifier": ident, "added": added}, args.pretty))
    return 0


def cmd_roster_list(args: argparse.Namespace) -> int:
    with ProfileStore(args.cfg.db_path) as store:
        students = [s.to_dict() for s in store.list_students()]
    print(_pretty(students, args.pretty))
    return 0


def cmd_roster_remove(args: argparse.Namespace) -> int:
    with ProfileStore(args.cfg.db_path) as store:
        removed = store.remove_student(args.identifier)
    if not removed:
        raise CliError(f"not on the roster: {args.identifier}", exit_code=1)
    print(_pretty({"identifier": args.identifier, "removed": True}, args.pretty))
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    with ProfileStore(args.cfg.db_path) as store:
        profile = store.get_profile(args.identifier)
    if profile is None:
        raise CliError(f"no stored profile for {args.identifier}", exit_code=1)
    print(_pretty(profile.to_dict(), args.pretty))
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    with ProfileStore(args.cfg.db_path) as store:
        profiles = store.list_profiles()
    out = {
        "stats": class_statistics(profiles).to_dict(),
        "leaderboard": leaderboard(profiles, limit=args.limit),
    }
    print(_pretty(out, args.pretty))
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    with ProfileStore(args.cfg.db_path) as store:
        profiles = store.list_profiles()
    if args.format == "json":
        rep = profiles_to_json(profiles, args.out)
    else:
        rep = profiles_to_csv(profiles, args.out)
    print(_pretty(rep, args.pretty))
    return 0


def cmd_extract(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.is_file():
        raise CliError(f"file not found: {args.file}")
    ident = validate_identifier(args.identifier or path.stem)
    doc = RawDocument(identifier=ident, url=path.resolve().as_uri(), html=path.read_text(encoding="utf-8", errors="replace"),
                      transport="file")
    candidates = extract(doc)
    rec = reconcile(candidates, ident)
    out = {
        "identifier": ident,
        "candidates": [c.to_dict() for c in candidates],
        "totalSolved": rec.total_solved,
        "totalSource": rec.total_source,
        "difficultyStats": rec.difficulty.to_dict(),
        "difficultySource": rec.difficulty_source,
        "topics": dict(rec.topic_solved),
        "valid": rec.provisional_validity,
    }
    print(_pretty(out, args.pretty))
    return 0


def cmd_synth(args: argparse.Namespace) -> int:
    gen = SyntheticGenerator(overrides=load_override_table(args.cfg.overrides_path))
    print(_pretty(gen.generate(args.identifier, jitter_seed=args.jitter_seed).to_dict(), args.pretty))
    return 0


# ----------------------------
# Parser
# ----------------------------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="tuf-tracker", description="TUF class progress tracker")
    ap.add_argument("--config", default=None, help="JSON config file (or TUF_TRACKER_CONFIG)")
    ap.add_argument("--db", default=None, help="SQLite database path")
    ap.add_argument("--transport", choices=("http", "browser"), default=None)
    ap.add_argument("--log-level", default=None)
    ap.add_argument("--log-file", default=None)
    ap.add_argument("--pretty", action="store_true", help="indent JSON output")
    sub = ap.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("scrape", help="scrape identifiers and print profiles")
    s.add_argument("identifiers", nargs="+")
    s.add_argument("--save", action="store_true", help="also store the profiles")
    s.add_argument("--delay", type=float, default=None, help="seconds between profiles")
    s.set_defaults(fn=cmd_scrape)

    b = sub.add_parser("batch", help="scrape the whole roster and store the results")
    b.add_argument("--roster", default=None, help="text file with one identifier per line")
    b.add_argument("--delay", type=float, default=None, help="seconds between profiles")
    b.set_defaults(fn=cmd_batch)

    r = sub.add_parser("roster", help="manage the student roster")
    rsub = r.add_subparsers(dest="roster_cmd", required=True)
    ra = rsub.add_parser("add")
    ra.add_argument("identifier")
    ra.add_argument("--name", default=None)
    ra.set_defaults(fn=cmd_roster_add)
    rl = rsub.add_parser("list")
    rl.set_defaults(fn=cmd_roster_list)
    rr = rsub.add_parser("remove")
    rr.add_argument("identifier")
    rr.set_defaults(fn=cmd_roster_remove)

    sh = sub.add_parser("show", help="print a stored profile")
    sh.add_argument("identifier")
    sh.set_defaults(fn=cmd_show)

    st = sub.add_parser("stats", help="class statistics and leaderboard")
    st.add_argument("--limit", type=int, default=None)
    st.set_defaults(fn=cmd_stats)

    e = sub.add_parser("export", help="export stored profiles")
    e.add_argument("--format", choices=("csv", "json"), default="csv")
    e.add_argument("--out", required=True)
    e.set_defaults(fn=cmd_export)

    x = sub.add_parser("extract", help="run the extractor on a saved HTML page (offline)")
    x.add_argument("file")
    x.add_argument("--identifier", default=None, help="defaults to the file name")
    x.set_defaults(fn=cmd_extract)

    sy = sub.add_parser("synth", help="print the synthetic profile of an identifier")
    sy.add_argument("identifier")
    sy.add_argument("--jitter-seed", type=int, default=None)
    sy.set_defaults(fn=cmd_synth)

    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    try:
        args.cfg = _config(args)
        setup_logging(args.cfg.log_level, args.cfg.log_file)
        return int(args.fn(args) or 0)
    except CliError as e:
        print(str(e), file=sys.stderr)
        return int(e.exit_code)
    except (ConfigError, InvalidIdentifierError) as e:
        print(str(e), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
