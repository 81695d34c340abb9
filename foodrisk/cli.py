"""CLI entry point for foodrisk."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .analyzer import AnalysisOutcome, Analyzer
from .config import AppConfig, build_reference, load_config
from .scoring.engine import ScoringEngine
from .scoring.models import ProductRecord


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="foodrisk",
        description="Estimate the health risk of packaged foods from nutrients and ingredients",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="path to a TOML config file",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="enable debug logging"
    )

    sub = parser.add_subparsers(dest="command")

    # text
    text_parser = sub.add_parser("text", help="look up a product by name and score it")
    text_parser.add_argument("query", type=str, nargs="+", help="product name")
    text_parser.add_argument(
        "--source",
        choices=["openfoodfacts", "spoonacular", "scraper"],
        default=None,
        help="product data source (overrides config)",
    )
    text_parser.add_argument("--json", action="store_true", help="output JSON")

    # image
    image_parser = sub.add_parser("image", help="read a label photo and score it")
    image_parser.add_argument("image", type=str, help="image file")
    image_parser.add_argument(
        "--backend", choices=["claude", "gemini"], default=None,
        help="vision backend (overrides config)",
    )
    image_parser.add_argument("--json", action="store_true", help="output JSON")

    # score
    score_parser = sub.add_parser("score", help="score a product record JSON file")
    score_parser.add_argument("file", type=str, help="JSON file, or - for stdin")
    score_parser.add_argument("--json", action="store_true", help="output JSON")

    # limits
    sub.add_parser("limits", help="print the scoring rule set as JSON")

    # history
    history_parser = sub.add_parser("history", help="show recent scans")
    history_parser.add_argument("--clear", action="store_true", help="delete all entries")

    # serve
    serve_parser = sub.add_parser("serve", help="run the HTTP API")
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()
    config = load_config(args.config)

    match args.command:
        case "text":
            asyncio.run(_cmd_text(config, args))
        case "image":
            asyncio.run(_cmd_image(config, args))
        case "score":
            _cmd_score(config, args)
        case "limits":
            print(json.dumps(build_reference(config).to_dict(), indent=2))
        case "history":
            _cmd_history(config, args)
        case "serve":
            _cmd_serve(config, args)


def _history_db(config: AppConfig):
    if not config.history.enabled:
        return None
    from .db.scan_history import ScanHistoryDB

    return ScanHistoryDB(
        db_path=config.history.db_path, max_entries=config.history.max_entries
    )


def _print_outcome(outcome: AnalysisOutcome, as_json: bool, config: AppConfig) -> None:
    if as_json:
        print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
    elif outcome.ok:
        print(outcome.result.display(build_reference(config)))
    else:
        print(f"{outcome.status}: {outcome.error}", file=sys.stderr)

    if not outcome.ok:
        sys.exit(2)


async def _cmd_text(config: AppConfig, args) -> None:
    from .sources import create_source

    query = " ".join(args.query)
    try:
        source = create_source(config, backend=args.source)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    history = _history_db(config)
    analyzer = Analyzer(
        source=source,
        engine=ScoringEngine(build_reference(config)),
        history=history,
    )
    if not args.json:
        print(f"🔍 Searching for {query!r}...")
    try:
        outcome = await analyzer.analyze_text(query)
    except (ValueError, ImportError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    finally:
        if history is not None:
            history.close()
    _print_outcome(outcome, args.json, config)


async def _cmd_image(config: AppConfig, args) -> None:
    from .vision import create_backend, load_image

    try:
        backend = create_backend(config, backend=args.backend)
        data, media_type = load_image(args.image)
    except (ValueError, FileNotFoundError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    history = _history_db(config)
    analyzer = Analyzer(
        vision=backend,
        engine=ScoringEngine(build_reference(config)),
        history=history,
    )
    if not args.json:
        print("📷 Reading label...")
    try:
        outcome = await analyzer.analyze_image(data, media_type)
    except (ValueError, ImportError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    finally:
        if history is not None:
            history.close()
    _print_outcome(outcome, args.json, config)


def _cmd_score(config: AppConfig, args) -> None:
    try:
        if args.file == "-":
            raw = json.load(sys.stdin)
        else:
            raw = json.loads(Path(args.file).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"Cannot read product record: {e}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(raw, dict):
        print("Product record must be a JSON object", file=sys.stderr)
        sys.exit(1)

    record = ProductRecord.from_dict(raw, source="file")
    # Local files are not scans, so nothing is written to history
    analyzer = Analyzer(engine=ScoringEngine(build_reference(config)))
    _print_outcome(analyzer.analyze_record(record), args.json, config)


def _cmd_history(config: AppConfig, args) -> None:
    history = _history_db(config)
    if history is None:
        print("Scan history is disabled.")
        return
    try:
        if args.clear:
            removed = history.clear()
            print(f"Removed {removed} entries.")
            return
        entries = history.get_recent()
    finally:
        history.close()

    if not entries:
        print("No scans yet.")
        return
    print(f"Recent scans ({len(entries)}):")
    for e in entries:
        print(
            f"  {e['scanned_at']}  {e['score']:>3}  {e['risk_level']:<6}  {e['product_name']}"
        )


def _cmd_serve(config: AppConfig, args) -> None:
    argv = []
    if args.config:
        argv += ["--config", args.config]
    if args.host:
        argv += ["--host", args.host]
    if args.port:
        argv += ["--port", str(args.port)]

    from .api import run

    run(argv)
