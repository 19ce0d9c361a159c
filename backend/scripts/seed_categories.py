#!/usr/bin/env python3
"""
Seed Categories Script

Inserts the default subscription categories. Safe to run repeatedly:
categories that already exist (by name) are left untouched.

Usage:
    python -m scripts.seed_categories
"""

import asyncio
import logging

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from subie.domain.subscription import DEFAULT_CATEGORIES
from subie.infrastructure.db.database import get_session_context, init_db
from subie.infrastructure.db.repositories import CategoryRepository

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def seed_categories() -> dict:
    """
    Insert missing default categories.

    Returns:
        Dict with created and skipped category names
    """
    stats = {"created": [], "skipped": []}

    await init_db()

    async with get_session_context() as session:
        repo = CategoryRepository(session)
        for category in DEFAULT_CATEGORIES:
            _, created = await repo.get_or_create(category)
            stats["created" if created else "skipped"].append(category.name)

    logger.info(
        f"Seeded {len(stats['created'])} categories, "
        f"{len(stats['skipped'])} already present"
    )
    return stats


if __name__ == "__main__":
    asyncio.run(seed_categories())
