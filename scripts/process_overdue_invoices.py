#!/usr/bin/env python3
"""
Mark issued invoices past their due date as OVERDUE, for every active network.

Meant to run once a day from cron. Running it twice the same day changes nothing.

Usage:
    python scripts/process_overdue_invoices.py
    python scripts/process_overdue_invoices.py --as-of 2026-01-31
    python scripts/process_overdue_invoices.py --network-id 3
"""

import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select

from src.core.config import settings
from src.core.database.session import async_session
from src.modules.invoices.service import SYSTEM_ACTOR, InvoiceService
from src.modules.networks.models import Network

logger = logging.getLogger("process_overdue_invoices")


async def process_all(as_of: date | None, network_id: int | None) -> int:
    total = 0
    async with async_session() as session:
        query = select(Network.id).where(Network.is_active.is_(True)).order_by(Network.id)
        if network_id is not None:
            query = query.where(Network.id == network_id)
        network_ids = list((await session.execute(query)).scalars().all())

        service = InvoiceService(session)
        for nid in network_ids:
            updated = await service.process_overdue_invoices(nid, as_of, SYSTEM_ACTOR)
            if updated:
                logger.info("Network %s: %s invoice(s) marked overdue", nid, updated)
            total += updated
    return total


async def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Mark past-due issued invoices as overdue")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    parser.add_argument("--network-id", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(message)s")
    total = await process_all(args.as_of, args.network_id)
    print(f"Done. {total} invoice(s) marked overdue.")


if __name__ == "__main__":
    asyncio.run(main())
