"""
Run a bulk content import, rollback or progress lookup from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Any

from app.domain.content_import import ImportProgress, OperatorContext, SourceDescriptor
from app.services.content_import_service import (
    ContentImportService,
    InlineTaskExecutor,
    load_records_document,
)
from app.services.errors import ContentImportError
from db.models.import_batch import ImportFileKind
from db.session import SessionLocal


def _progress_payload(progress: ImportProgress) -> dict[str, Any]:
    return {
        "batch_id": str(progress.batch_id),
        "status": progress.status,
        "progress_percentage": progress.progress_percentage,
        "processed_rows": progress.processed_rows,
        "total_rows": progress.total_rows,
        "successful": progress.successful,
        "failed": progress.failed,
        "skipped": progress.skipped,
        "errors": [item.to_dict() for item in progress.errors],
        "is_complete": progress.is_complete,
    }


def _run_import(service: ContentImportService, args: argparse.Namespace, operator: OperatorContext) -> dict[str, Any]:
    path = Path(args.file)
    records = load_records_document(path.read_bytes())
    source = SourceDescriptor(file_name=path.name, file_kind=ImportFileKind.JSON)

    with SessionLocal() as db:
        result = service.start_import(
            db,
            executor=InlineTaskExecutor(),
            operator=operator,
            source=source,
            records=records,
        )
        if not result.accepted:
            return {
                "batch_id": str(result.batch_id),
                "status": result.status,
                "validation_summary": result.validation.summary.to_dict(),
                "errors": [item.to_dict() for item in result.validation.error_messages()],
                "warnings": [item.to_dict() for item in result.validation.warning_messages()],
            }
        progress = service.get_progress(db, batch_id=result.batch_id)

    if progress is None:
        return {"batch_id": str(result.batch_id), "status": "unknown"}
    return _progress_payload(progress)


def main() -> int:
    parser = argparse.ArgumentParser(description="Bulk import content records from a JSON file.")
    parser.add_argument(
        "--actor-id",
        dest="actor_id",
        default=os.getenv("IMPORT_ACTOR_ID", "cli"),
        help="Operator id recorded on the batch and audit entries.",
    )
    parser.add_argument(
        "--actor-name",
        dest="actor_name",
        default=os.getenv("IMPORT_ACTOR_NAME", "Command line"),
        help="Operator display name.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Validate and import a JSON file of records.")
    import_parser.add_argument("file", help="Path to a JSON list of records, or an object with 'records'.")

    rollback_parser = subparsers.add_parser("rollback", help="Delete every record a batch created.")
    rollback_parser.add_argument("batch_id", type=uuid.UUID)

    progress_parser = subparsers.add_parser("progress", help="Show the progress of a batch.")
    progress_parser.add_argument("batch_id", type=uuid.UUID)

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    operator = OperatorContext(actor_id=args.actor_id, actor_name=args.actor_name)
    service = ContentImportService()

    try:
        if args.command == "import":
            payload = _run_import(service, args, operator)
        elif args.command == "rollback":
            with SessionLocal() as db:
                result = service.rollback_import(db, batch_id=args.batch_id, operator=operator)
            payload = {
                "batch_id": str(args.batch_id),
                "rolled_back_count": result.rolled_back_count,
                "missing_record_ids": list(result.missing_record_ids),
            }
        else:
            with SessionLocal() as db:
                progress = service.get_progress(db, batch_id=args.batch_id)
            if progress is None:
                print(f"Import batch not found: {args.batch_id}", file=sys.stderr)
                return 1
            payload = _progress_payload(progress)
    except ContentImportError as exc:
        print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
