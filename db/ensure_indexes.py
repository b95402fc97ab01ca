import asyncio
import os
import sys

# make the project root importable when run as a script
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.append(BASE_DIR)

from core.logger import logger
from db.mongo import get_db
from db.usage import ACCESS_COLLECTION, USAGE_COLLECTION


async def main():
    db = await get_db()

    await db[USAGE_COLLECTION].create_index([("ts", -1)])
    await db[USAGE_COLLECTION].create_index([("user_id", 1), ("ts", -1)])
    await db[USAGE_COLLECTION].create_index([("task", 1), ("ts", -1)])
    await db[USAGE_COLLECTION].create_index([("model_used", 1), ("ts", -1)])

    await db[ACCESS_COLLECTION].create_index([("ts", -1)])
    await db[ACCESS_COLLECTION].create_index([("route", 1), ("method", 1), ("ts", -1)])
    await db[ACCESS_COLLECTION].create_index([("user_id", 1), ("ts", -1)])
    await db[ACCESS_COLLECTION].create_index([("status_code", 1), ("ts", -1)])

    logger.info("Indexes created on {} and {}", USAGE_COLLECTION, ACCESS_COLLECTION)


if __name__ == "__main__":
    asyncio.run(main())
