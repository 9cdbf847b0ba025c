#!/usr/bin/env python3
"""
Remove duplicate chat messages left behind by double submissions.

Two messages are duplicates when they share the query id, text, sender and the
same wall-clock second; the earliest one is kept.

Usage:
    python scripts/cleanup_duplicate_messages.py            # report only
    python scripts/cleanup_duplicate_messages.py --apply    # delete duplicates
"""

from __future__ import annotations

import argparse
import asyncio
import json

from sqlalchemy import select

from app.core.logging import configure_logging
from app.db.session import AsyncSessionLocal
from app.models.chat_message import ChatMessage
from app.services import chat_store


async def run(apply: bool) -> dict[str, int]:
    async with AsyncSessionLocal() as session:
        if apply:
            return await chat_store.cleanup_duplicate_messages(session)
        result = await session.execute(select(ChatMessage))
        messages = list(result.scalars().all())
        duplicates = chat_store.find_duplicate_ids(messages)
        return {
            "before": len(messages),
            "duplicates_removed": 0,
            "duplicates_found": len(duplicates),
            "after": len(messages),
        }


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--apply", action="store_true", help="delete duplicates instead of only reporting them")
    args = parser.parse_args()
    configure_logging()
    summary = asyncio.run(run(args.apply))
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
