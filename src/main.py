"""Main entry point for offline recording processing."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog

from .config import get_settings
from .recording import EventProcessor, RecordedEvent, convert_rrweb_recording
from .utils.logging import configure_logging

logger = structlog.get_logger()


def load_recording(path: Path, input_format: str) -> tuple[list[RecordedEvent], object]:
    """Load a recording file as RecordedEvents.

    Returns:
        Tuple of (events, form resolver or None)
    """
    with open(path) as f:
        raw = json.load(f)

    if input_format == "rrweb":
        return convert_rrweb_recording(raw, session_id=path.stem)

    if isinstance(raw, dict):
        raw = raw.get("events", [])
    return [RecordedEvent.from_dict(item) for item in raw], None


async def process_recording(input_path: str, output_path: str | None, input_format: str) -> dict:
    """Run a recording file through the processing pipeline."""
    settings = get_settings()

    events, resolver = load_recording(Path(input_path), input_format)
    processor = EventProcessor(settings.processing_options(), form_resolver=resolver)
    processor.add_events(events)
    result = await processor.process_all_events()

    snapshot = processor.export_for_test_generation()
    if output_path:
        with open(output_path, "w") as f:
            json.dump(snapshot, f, indent=2)
        logger.info("Processed recording saved", path=output_path)
    else:
        json.dump(snapshot, sys.stdout, indent=2)
        sys.stdout.write("\n")

    print("\n" + "=" * 50, file=sys.stderr)
    print("RECORDING SUMMARY", file=sys.stderr)
    print("=" * 50, file=sys.stderr)
    print(f"Raw Events: {result.original_count}", file=sys.stderr)
    print(f"Processed Events: {result.processed_count}", file=sys.stderr)
    print(f"Removed: {result.removed_count}", file=sys.stderr)
    print(f"Groups: {result.groups_created}", file=sys.stderr)
    for line in result.optimizations:
        print(f"  - {line}", file=sys.stderr)
    print("=" * 50 + "\n", file=sys.stderr)

    return snapshot


def cli(argv: list[str] | None = None):
    """Command-line interface."""
    parser = argparse.ArgumentParser(
        description="Turn a browser interaction recording into replayable test steps"
    )
    parser.add_argument(
        "input",
        help="Path to a JSON recording"
    )
    parser.add_argument(
        "--format", "-f",
        choices=["events", "rrweb"],
        default="events",
        help="Recording format (default: events)"
    )
    parser.add_argument(
        "--output", "-o",
        help="Write the processed export here instead of stdout"
    )

    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json)

    try:
        asyncio.run(process_recording(args.input, args.output, args.format))
    except (OSError, ValueError) as e:
        logger.error("Failed to process recording", path=args.input, error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    cli()
