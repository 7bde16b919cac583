# Load .env BEFORE any other imports that might need environment variables
from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from gitwalk.config import Config, STORE_BACKENDS
from gitwalk.errors import GitwalkError
from gitwalk.ingestion.walker import RepositoryWalker
from gitwalk.store import create_store

logger = logging.getLogger("gitwalk")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Configure the process-wide root logger once, on stderr."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT, stream=sys.stderr)


def emit_json(*, ok: bool, error: Optional[str], data: Any, metrics: Dict[str, Any]) -> None:
    """Print the JSON result envelope on stdout."""
    payload = {"ok": ok, "error": error, "data": data, "metrics": metrics}
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _fail(args, message: str) -> None:
    logger.error(message)
    if args.json:
        emit_json(ok=False, error=message, data=None, metrics={})
    else:
        print(f"❌ {message}", file=sys.stderr)
    sys.exit(1)


def cmd_walk(args):
    """Discover repositories under args.root and ingest their history."""
    config = Config(Path(args.config) if args.config else None)

    try:
        store_cfg = config.get_store_config()
        walk_cfg = config.get_walk_config()
        logging_cfg = config.get_logging_config()
        neo4j_cfg = config.get_neo4j_config()
    except RuntimeError as e:
        configure_logging("INFO")
        _fail(args, str(e))

    configure_logging("DEBUG" if args.verbose else logging_cfg["level"])

    backend = args.store or store_cfg["backend"]
    sqlite_path = args.db or store_cfg["sqlite_path"]
    continue_on_error = args.continue_on_error or bool(walk_cfg.get("continue_on_error"))

    root = Path(args.root).expanduser()
    if not root.exists():
        _fail(args, f"Walk root does not exist: {root}")
    root = root.resolve()

    try:
        store = create_store(backend, sqlite_path=sqlite_path, neo4j_config=neo4j_cfg)
    except (GitwalkError, ValueError) as e:
        _fail(args, str(e))

    try:
        with store:
            store.initialize()
            walker = RepositoryWalker(
                store,
                logger=logging.getLogger("gitwalk.walker"),
                ignore_dirs=walk_cfg.get("ignore_dirs", []),
                continue_on_error=continue_on_error,
                echo_writes=logging_cfg["echo_writes"],
            )
            report = walker.walk(root)
            store_stats = store.stats()
    except (GitwalkError, OSError) as e:
        _fail(args, f"Walk aborted: {e}")

    if args.json:
        emit_json(
            ok=report.ok,
            error=None if report.ok else f"{len(report.failed)} repository(ies) failed",
            data={
                "root": str(root),
                "store": backend,
                "succeeded": report.succeeded,
                "failed": [{"path": path, "error": error} for path, error in report.failed],
                "entities": store_stats,
            },
            metrics=report.totals(),
        )
    else:
        totals = report.totals()
        print(f"\n✅ Walked {root}")
        print(f"   Repositories: {totals['repositories']:,}")
        print(f"   Branches:     {totals['branches']:,}")
        print(f"   Commits:      {totals['commits']:,}")
        print(f"   Edges:        {totals['edges']:,}")
        print(f"\n📈 Store ({backend}):")
        for name, count in store_stats.items():
            print(f"   {name + ':':<12}  {count:,}")
        if report.failed:
            print(f"\n❌ {len(report.failed)} repository(ies) failed:", file=sys.stderr)
            for path, error in report.failed:
                print(f"   {path}: {error}", file=sys.stderr)

    if not report.ok:
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitwalk",
        description="gitwalk: ingest branches, commits and authors of every git repository under a directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gitwalk ~/src                         # Walk into ./gitwalk.db (SQLite)
  gitwalk ~/src --store neo4j           # Write into Neo4j (NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD)
  gitwalk ~/src --continue-on-error     # Record failing repositories and keep going
        """,
    )
    parser.add_argument("root", help="Directory to scan for repositories")
    parser.add_argument(
        "--store", choices=STORE_BACKENDS, default=None, help="Fact store backend (default: from config)"
    )
    parser.add_argument("--db", default=None, help="SQLite database path (default: gitwalk.db)")
    parser.add_argument("--config", default=None, help="Path to a gitwalk.json config file")
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Keep walking when a repository fails; exit non-zero at the end",
    )
    parser.add_argument("--json", action="store_true", help="Print a JSON result envelope")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every entity write")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    cmd_walk(args)


if __name__ == "__main__":
    main()
