import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opennow.config import get_settings
from opennow.store.sql import SqlDocumentStore


async def init_documents_table(database_url: str) -> None:
    store = SqlDocumentStore(database_url=database_url)
    await store.startup()
    await store.shutdown()


def main() -> None:
    settings = get_settings()
    asyncio.run(init_documents_table(settings.database_url))
    print("Database initialized with the OpenNow documents table.")


if __name__ == "__main__":
    main()
