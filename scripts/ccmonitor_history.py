"""Report persisted session history to stdout or a file."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable

from ccmonitor.config import MonitorSettings
from ccmonitor.storage import HistoryRecord


def load_records(path: Path) -> list[HistoryRecord]:
    """Read the history image at ``path``; raises ``ValueError`` when it is unreadable."""

    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValueError(f"Cannot read {path}: {exc}") from exc
    if not isinstance(document, list):
        raise ValueError(f"{path} does not contain a JSON array")
    try:
        return [HistoryRecord.from_dict(item) for item in document]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"{path} contains an invalid record: {exc}") from exc


def _normalize_records(
    records: Iterable[HistoryRecord],
    *,
    status: str | None = None,
) -> list[dict[str, object]]:
    filtered = [record.to_dict() for record in records if not status or record.status.value == status]
    filtered.sort(key=lambda item: item["createdAt"])
    return filtered


def _default_record_formatter(item: dict[str, object]) -> str:
    return " | ".join(
        [
            f"session={item['id']}",
            f"cwd={item['workingDirectory']}",
            f"status={item['status']}",
            f"output={item['outputSize']}",
            f"created={item['createdAt']}",
            f"ended={item.get('endedAt', '-')}",
        ]
    )


def report_history(args: argparse.Namespace, *, formatter=_default_record_formatter) -> int:
    path = Path(args.path) if args.path else MonitorSettings().history_path
    if not path.exists():
        print(f"History file not found: {path}", file=sys.stderr)
        return 1

    try:
        records = load_records(path)
    except ValueError as exc:
        print(f"History unreadable: {exc}", file=sys.stderr)
        return 1

    payload = _normalize_records(records, status=args.status)
    if args.limit is not None and args.limit > 0:
        payload = payload[-args.limit :]
    if args.format == "json":
        output_text = json.dumps(payload, indent=2)
    else:
        output_text = "\n".join(formatter(item) for item in payload)

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(output_text, encoding="utf-8")
    else:
        print(output_text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report ccmonitor session history for review or monitoring.")
    parser.add_argument(
        "--path",
        default=None,
        help="History file to read (default: CCMONITOR_HISTORY_PATH)",
    )
    parser.add_argument(
        "--status",
        choices={"running", "waiting", "completed"},
        default=None,
        help="Only report sessions with this status",
    )
    parser.add_argument(
        "--format",
        choices={"json", "text"},
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument("--output", help="Optional path to write the report to")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, emit only the latest N sessions after filtering",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    exit_code = report_history(args)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
