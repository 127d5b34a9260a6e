from __future__ import annotations

import asyncio
import sys
import uuid
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opennow.config import get_settings
from opennow.models import OWNER_ADMIN_CREATED, Business
from opennow.services.business_repository import BusinessRepository
from opennow.services.category_service import DEFAULT_CATEGORIES
from opennow.services.time_service import epoch_millis
from opennow.store import APP_CATEGORIES, DocumentStore, build_store

NAMESPACE = uuid.UUID("5d1c6f0e-8a0b-4c55-9a56-0e3f7c1d2b44")

BUSINESSES: list[dict[str, Any]] = [
    {
        "name": "Padaria Pão Dourado",
        "category": "Alimentação",
        "description": "Pães artesanais, café da manhã e salgados fresquinhos.",
        "address": "Rua Augusta, 1200 - Consolação, São Paulo - SP, 01304-001, Brasil",
        "neighborhood": "Consolação",
        "city": "São Paulo",
        "state": "SP",
        "latitude": -23.5560,
        "longitude": -46.6590,
        "open_time": "06:00",
        "close_time": "21:00",
        "whatsapp": "+55 11 99999-0101",
        "plan": "gold",
    },
    {
        "name": "Drogaria Vida Plena",
        "category": "Farmácia",
        "description": "Medicamentos, perfumaria e aferição de pressão.",
        "address": "Av. Paulista, 900 - Bela Vista, São Paulo - SP, 01310-100, Brasil",
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "state": "SP",
        "latitude": -23.5646,
        "longitude": -46.6527,
        "open_time": "00:00",
        "close_time": "24:00",
        "whatsapp": "+55 11 99999-0102",
        "plan": "diamond",
    },
    {
        "name": "Oficina do Zé",
        "category": "Automotivo",
        "description": "Troca de óleo, freios e revisão completa.",
        "address": "Rua Vergueiro, 3000 - Vila Mariana, São Paulo - SP, 04101-300, Brasil",
        "neighborhood": "Vila Mariana",
        "city": "São Paulo",
        "state": "SP",
        "latitude": -23.5880,
        "longitude": -46.6340,
        "open_time": "08:00",
        "close_time": "18:00",
        "whatsapp": "+55 11 99999-0103",
    },
    {
        "name": "Studio Bela Forma",
        "category": "Beleza",
        "description": "Corte, escova e manicure com hora marcada.",
        "address": "Rua dos Pinheiros, 500 - Pinheiros, São Paulo - SP, 05422-001, Brasil",
        "neighborhood": "Pinheiros",
        "city": "São Paulo",
        "state": "SP",
        "latitude": -23.5660,
        "longitude": -46.6850,
        "open_time": "09:00",
        "close_time": "19:00",
        "whatsapp": "+55 11 99999-0104",
    },
]


def business_id_from_name(name: str) -> str:
    return str(uuid.uuid5(NAMESPACE, name))


async def seed(store: DocumentStore) -> int:
    repository = BusinessRepository(store)
    stamp = epoch_millis()
    for payload in BUSINESSES:
        business = Business(
            business_id=business_id_from_name(payload["name"]),
            owner_id=OWNER_ADMIN_CREATED,
            country="Brasil",
            verified=True,
            created_at=stamp,
            updated_at=stamp,
            **payload,
        )
        await repository.save(business)

    categories = store.collection(APP_CATEGORIES)
    for category in DEFAULT_CATEGORIES:
        await categories.set(category.id, category.model_dump())
    return len(BUSINESSES)


async def run() -> int:
    store = build_store(get_settings())
    await store.startup()
    try:
        return await seed(store)
    finally:
        await store.shutdown()


def main() -> None:
    count = asyncio.run(run())
    print(f"Seeded businesses: {count}")


if __name__ == "__main__":
    main()
