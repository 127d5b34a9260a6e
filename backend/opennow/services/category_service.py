from __future__ import annotations

import logging
import re
import unicodedata

from ..config import Settings
from ..errors import StoreError, ValidationError
from ..models import Category
from ..store import APP_CATEGORIES, DocumentStore
from ..telemetry import with_timeout
from .business_repository import BusinessRepository
from .time_service import epoch_millis

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Outros"
DYNAMIC_CATEGORY_ORDER = 99

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="Alimentação", label="Alimentação", order=1),
    Category(id="Farmácia", label="Farmácia", order=2),
    Category(id="Serviços", label="Serviços", order=3),
    Category(id="Varejo", label="Varejo", order=4),
    Category(id="Saúde", label="Saúde", order=5),
    Category(id="Motorista", label="Motorista", order=6),
    Category(id="Entregas", label="Entregas", order=7),
    Category(id="Freelancer", label="Freelancer", order=8),
    Category(id="Outros", label="Outros", order=9),
)

# Evaluated top to bottom; the first rule sharing a tag with the place wins.
PLACE_TYPE_RULES: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({"restaurant", "food", "meal_takeaway", "bar", "cafe"}), "Alimentação"),
    (frozenset({"bakery"}), "Padaria"),
    (frozenset({"pharmacy", "drugstore"}), "Farmácia"),
    (frozenset({"health", "doctor", "hospital", "dentist"}), "Saúde"),
    (frozenset({"gym"}), "Academia"),
    (frozenset({"supermarket", "grocery_or_supermarket", "convenience_store"}), "Mercado"),
    (
        frozenset({"shopping_mall", "clothing_store", "store", "electronics_store", "home_goods_store"}),
        "Varejo",
    ),
    (frozenset({"beauty_salon", "hair_care", "spa"}), "Beleza"),
    (frozenset({"gas_station", "car_wash", "car_repair"}), "Automotivo"),
    (frozenset({"lodging", "campground"}), "Hotel"),
    (frozenset({"school", "university"}), "Educação"),
    (frozenset({"bank", "atm", "finance"}), "Serviços"),
)

PLACE_TYPE_TRANSLATIONS: dict[str, str] = {
    "pet_store": "Pet Shop",
    "veterinary_care": "Veterinária",
    "real_estate_agency": "Imobiliária",
    "lawyer": "Advocacia",
    "dentist": "Dentista",
    "insurance_agency": "Seguros",
    "travel_agency": "Agência de Viagens",
    "hardware_store": "Material de Construção",
    "furniture_store": "Móveis",
    "home_goods_store": "Casa e Decoração",
    "jewelry_store": "Joalheria",
    "book_store": "Livraria",
    "movie_theater": "Cinema",
    "museum": "Museu",
    "park": "Parque",
    "laundry": "Lavanderia",
    "florist": "Floricultura",
    "accounting": "Contabilidade",
    "car_dealer": "Concessionária",
    "church": "Igreja",
    "place_of_worship": "Igreja",
    "library": "Biblioteca",
    "post_office": "Correios",
}


def humanize_place_type(place_type: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in place_type.split("_") if word)


def map_place_types(place_types: list[str] | None) -> str:
    tags = [tag for tag in (place_types or []) if isinstance(tag, str) and tag]
    tag_set = set(tags)
    for rule_tags, category in PLACE_TYPE_RULES:
        if rule_tags & tag_set:
            return category
    if not tags:
        return FALLBACK_CATEGORY
    primary = tags[0]
    return PLACE_TYPE_TRANSLATIONS.get(primary) or humanize_place_type(primary) or FALLBACK_CATEGORY


def slugify_category(label: str) -> str:
    folded = unicodedata.normalize("NFD", label.lower())
    stripped = "".join(char for char in folded if unicodedata.category(char) != "Mn")
    return re.sub(r"\s+", "-", stripped.strip())


def _sort_key(category: Category) -> tuple[int, str]:
    return (category.order or DYNAMIC_CATEGORY_ORDER, category.label.casefold())


class CategoryService:
    """Category taxonomy: defaults, admin-created entries and labels in use."""

    def __init__(self, store: DocumentStore, settings: Settings) -> None:
        self.collection = store.collection(APP_CATEGORIES)
        self.repository = BusinessRepository(store)
        self.timeout_seconds = settings.category_read_timeout_seconds

    async def list_categories(self) -> list[Category]:
        categories: dict[str, Category] = {category.id: category for category in DEFAULT_CATEGORIES}

        try:
            admin_documents, timed_out = await with_timeout(self.collection.all(), self.timeout_seconds, [])
        except StoreError:
            logger.warning("Could not read admin categories, using defaults")
            admin_documents, timed_out = [], False
        if timed_out:
            logger.warning("Admin category read exceeded %.1fs, returning defaults", self.timeout_seconds)
            return sorted(DEFAULT_CATEGORIES, key=_sort_key)

        for document in admin_documents:
            try:
                category = Category.model_validate(document)
            except ValueError:
                logger.warning("Skipping malformed category document %r", document)
                continue
            categories.setdefault(category.id, category)

        try:
            businesses, timed_out = await with_timeout(self.repository.list_all(), self.timeout_seconds, [])
        except StoreError:
            logger.warning("Could not read categories in use")
            businesses, timed_out = [], False
        if timed_out:
            logger.warning("Category-in-use read exceeded %.1fs, skipping dynamic categories", self.timeout_seconds)
        for business in businesses:
            if business.category and business.category not in categories:
                categories[business.category] = Category(
                    id=business.category,
                    label=business.category,
                    order=DYNAMIC_CATEGORY_ORDER,
                )

        return sorted(categories.values(), key=_sort_key)

    async def create_category(self, label: str) -> Category:
        clean_label = (label or "").strip()
        if not clean_label:
            raise ValidationError("Label is required")
        category = Category(id=slugify_category(clean_label), label=clean_label, order=epoch_millis())
        await self.collection.set(category.id, category.model_dump())
        logger.info("Created category id=%s label=%r", category.id, category.label)
        return category

    async def delete_category(self, category_id: str) -> None:
        await self.collection.delete(category_id)
        logger.info("Deleted category id=%s", category_id)
