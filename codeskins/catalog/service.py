"""
Cas d'usage catalogue consommés par le cœur commerce:
lookup produit/licence, disponibilité à la lecture, compteurs dénormalisés.
"""
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from codeskins.catalog import repository
from codeskins.catalog.models import LicenseTerms, Product, UNLIMITED, is_purchasable, remaining_sales
from codeskins.errors import ProductNotFoundError

logger = logging.getLogger(__name__)

CAS_ATTEMPTS = 5

def get_product(product_id: str) -> Optional[Product]:
    row = repository.get_template(product_id)
    return Product.from_row(row) if row else None

def get_products(ids: Iterable[str]) -> Dict[str, Product]:
    """Retourne {id: Product} pour les IDs trouvés (les absents sont omis)."""
    rows = repository.get_templates_by_ids(list(ids))
    products = [Product.from_row(r) for r in rows]
    return {p.id: p for p in products}

def get_license(license_id: Optional[str]) -> Optional[LicenseTerms]:
    if not license_id:
        return None
    row = repository.get_license(license_id)
    return LicenseTerms.from_row(row) if row else None

def check_availability(product_id: str) -> Tuple[Product, Optional[LicenseTerms], bool]:
    """
    Recalcule la disponibilité à chaque appel (pas de cache, évite la survente).
    Lève ProductNotFoundError si le template n'existe pas.
    """
    product = get_product(product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    license = get_license(product.license_id)
    return product, license, is_purchasable(product, license)

def availability_summary(product_id: str) -> Dict[str, object]:
    product, license, available = check_availability(product_id)
    return {
        "templateId": product.id,
        "available": available,
        "salesCount": product.sales_count,
        "maxSales": license.max_sales if license else UNLIMITED,
        "remainingSales": remaining_sales(product, license),
    }

def unavailable_ids(ids: Iterable[str]) -> List[str]:
    """IDs introuvables, inactifs ou ayant atteint maxSales (ordre d'entrée conservé)."""
    wanted = [str(i) for i in ids]
    products = get_products(wanted)
    licenses: Dict[str, Optional[LicenseTerms]] = {}
    failed: List[str] = []
    for pid in wanted:
        product = products.get(pid)
        if product is None:
            failed.append(pid)
            continue
        key = product.license_id or ""
        if key not in licenses:
            licenses[key] = get_license(product.license_id)
        if not is_purchasable(product, licenses[key]):
            failed.append(pid)
    return failed

def increment_download_counter(product_id: str) -> bool:
    """
    Compteur de popularité (hors invariant de quota): best-effort.
    Les échecs sont journalisés, jamais propagés.
    """
    try:
        for _ in range(CAS_ATTEMPTS):
            current = repository.read_counter(product_id, "downloads")
            if current is None:
                return False
            if repository.set_counter_if(product_id, "downloads", current, current + 1):
                return True
        logger.warning("catalog.increment_download_counter contention id=%s", product_id)
    except Exception:
        logger.exception("catalog.increment_download_counter failed id=%s", product_id)
    return False

def increment_sales_count(product_id: str, max_sales: int = UNLIMITED) -> bool:
    """
    Incrément conditionnel de 'sales': n'aboutit que si sales < max_sales
    (ou max_sales illimité). Retourne False si la limite est atteinte.
    """
    for _ in range(CAS_ATTEMPTS):
        current = repository.read_counter(product_id, "sales")
        if current is None:
            return False
        if max_sales != UNLIMITED and current >= max_sales:
            return False
        if repository.set_counter_if(product_id, "sales", current, current + 1):
            return True
    logger.warning("catalog.increment_sales_count contention id=%s", product_id)
    return False
