from __future__ import annotations

import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from petichat.persistence.db import SessionLocal
from petichat.services.templates import default_templates, ensure_default_templates


async def seed_templates() -> int:
    async with SessionLocal() as session:
        created = await ensure_default_templates(session)
    skipped = len(default_templates()) - created
    print(f"Seeded templates created={created} skipped={skipped}")
    return 0


def main() -> int:
    # Exit non-zero so deploy hooks notice a database that is missing or unmigrated.
    try:
        return asyncio.run(seed_templates())
    except SQLAlchemyError as exc:
        print(f"seed_templates failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
