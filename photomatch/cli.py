"""Command-line interface for the photomatch project."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

from tqdm import tqdm

from .config import Settings
from .engine import PhotoMatchEngine
from .errors import DecodeError
from .group.similarity import component_similarities, combine_components
from .io.models import AcquisitionStats, MatchResult, ProfileRecord
from .io.outputs import read_corpus, write_corpus, write_match_report
from .io.repository import InMemoryRepository

logger = logging.getLogger(__name__)

_COMPONENT_ORDER = (
    "simple_hash",
    "enhanced_hash",
    "dct_hash",
    "color",
    "edges",
    "brightness",
    "texture",
)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the photomatch engine."""
    parser = argparse.ArgumentParser(
        description="Sign profile photos and search them by visual similarity."
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser(
        "ingest", help="Download and sign the photos of profile records."
    )
    ingest.add_argument(
        "--input",
        required=True,
        help="Path to a JSON-lines file of profile records.",
    )
    ingest.add_argument(
        "--store",
        required=True,
        help="Parquet corpus file; created if missing, extended otherwise.",
    )
    ingest.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Concurrent image downloads per profile.",
    )
    ingest.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Seconds allowed per image download, retries included.",
    )

    search = subparsers.add_parser("search", help="Find stored photos similar to an image.")
    search.add_argument("--image", required=True, help="Path to the query photo.")
    search.add_argument("--store", required=True, help="Parquet corpus file to search.")
    search.add_argument("--top", type=int, default=None, help="Maximum matches to show.")
    search.add_argument(
        "--report",
        default=None,
        help="Optional path where a JSON match report will be written.",
    )

    compare = subparsers.add_parser("compare", help="Score two local photos against each other.")
    compare.add_argument("left", help="First photo.")
    compare.add_argument("right", help="Second photo.")

    return parser.parse_args(list(argv) if argv is not None else None)


def read_records(path: Path) -> list[ProfileRecord]:
    """Read profile records from the JSON-lines file at *path*."""
    if not path.exists():
        raise FileNotFoundError(f"Input file does not exist: {path}")
    records: list[ProfileRecord] = []
    for number, line in enumerate(path.read_text(encoding="utf-8-sig").splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            records.append(ProfileRecord.from_dict(json.loads(line)))
        except (json.JSONDecodeError, ValueError) as exc:
            logger.warning("Skipping line %d of %s: %s", number, path, exc)
    return records


def _load_store(path: Path) -> InMemoryRepository:
    if path.exists():
        return read_corpus(path)
    return InMemoryRepository()


def _run_ingest(args: argparse.Namespace, settings: Settings) -> int:
    records = read_records(Path(args.input))
    print(f"Profiles: {len(records)}")
    store_path = Path(args.store)
    repository = _load_store(store_path)
    engine = PhotoMatchEngine(repository, settings=settings)

    totals = AcquisitionStats()
    signed = skipped = 0
    try:
        for record in tqdm(records, desc="Ingesting profiles", unit="profile", leave=False):
            report = engine.ingest_profile(
                record, max_workers=max(1, args.workers), deadline=args.deadline
            )
            totals.merge(report.stats)
            signed += report.signed
            skipped += report.skipped
    finally:
        write_corpus(store_path, repository)

    print(f"Images signed: {signed}, skipped: {skipped}")
    print(
        f"Downloads: {totals.successful} ok, {totals.failed} failed, "
        f"{totals.total_attempts} attempts ({totals.success_rate * 100.0:.1f}% success)"
    )
    print(f"Corpus: {len(repository)} images -> {store_path}")
    return 0


def _print_result(result: MatchResult) -> None:
    if not result.matches:
        print("No matches (no-match)")
        return
    print(f"Confidence: {result.confidence_level.value}")
    for index, match in enumerate(result.matches, start=1):
        label = match.profile.name or match.profile.external_id
        print(
            f"  {index}. {label} [{match.profile.external_id}] "
            f"score={match.similarity:.3f} ({match.confidence_level.value}) -> {match.image.url}"
        )


def _run_search(args: argparse.Namespace, settings: Settings) -> int:
    repository = _load_store(Path(args.store))
    engine = PhotoMatchEngine(repository, settings=settings)
    try:
        result = engine.search_by_image(Path(args.image).read_bytes(), top_n=args.top)
    except DecodeError as exc:
        print(f"[error] {args.image}: {exc}")
        return 1
    _print_result(result)
    if args.report:
        write_match_report(Path(args.report), result)
        print(f"[report] {args.report}")
    return 0


def _run_compare(args: argparse.Namespace, settings: Settings) -> int:
    engine = PhotoMatchEngine(InMemoryRepository(), settings=settings)
    signatures = []
    for name in (args.left, args.right):
        try:
            signature = engine.sign_upload(Path(name).read_bytes())
        except DecodeError as exc:
            print(f"[error] {name}: {exc}")
            return 1
        if signature is None:
            print(f"[error] {name}: signature generation failed")
            return 1
        signatures.append(signature)

    components = component_similarities(*signatures)
    total = combine_components(components, settings.weights)
    summary = ", ".join(f"{name}={components[name]:.3f}" for name in _COMPONENT_ORDER)
    print(f"score={total:.3f} ({summary})")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    settings = Settings.from_env()
    handlers = {
        "ingest": _run_ingest,
        "search": _run_search,
        "compare": _run_compare,
    }
    return handlers[args.command](args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
