from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta, timezone
import sys

from petichat.core.config import get_settings
from petichat.persistence.db import SessionLocal
from petichat.persistence.repos import cases as cases_repo


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Delete draft cases abandoned before any document was generated"
    )
    parser.add_argument(
        "--older-than-days",
        type=int,
        default=None,
        help="Age threshold (default: DRAFT_ORPHAN_TTL_DAYS)",
    )
    parser.add_argument("--dry-run", action="store_true", help="List candidates without deleting")
    return parser


async def _sweep(args: argparse.Namespace) -> int:
    days = args.older_than_days if args.older_than_days is not None else get_settings().draft_orphan_ttl_days
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    async with SessionLocal() as session:
        orphans = await cases_repo.list_orphan_drafts(session, created_before=cutoff)
        for case in orphans:
            print(f"orphan_draft case_id={case.id} tenant_id={case.tenant_id} created_at={case.created_at}")
            if not args.dry_run:
                await cases_repo.delete_case(session, case.tenant_id, case.id)
        if not args.dry_run:
            await session.commit()
    print(f"{'orphan_drafts_found' if args.dry_run else 'orphan_drafts_deleted'}={len(orphans)}")
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    return asyncio.run(_sweep(args))


if __name__ == "__main__":
    sys.exit(main())
