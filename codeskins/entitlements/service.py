"""
Ledger des droits de téléchargement.
- grant: crée le droit à la complétion d'une commande (idempotent).
- consume: incrément atomique conditionnel de download_count.
Le Download Gate (codeskins.downloads) est le seul consommateur de consume().
"""
from datetime import datetime, timezone
from typing import List, Optional
import logging

from codeskins.entitlements import repository
from codeskins.entitlements.models import Entitlement
from codeskins.errors import ConflictError, QuotaExceededError

logger = logging.getLogger(__name__)

CAS_ATTEMPTS = 5

def find(user_id: str, product_id: str, license_id: str) -> Optional[Entitlement]:
    row = repository.get_entitlement(user_id, product_id, license_id)
    return Entitlement.from_row(row) if row else None

def list_for_user(user_id: str) -> List[dict]:
    rows = repository.list_entitlements(user_id)
    history = []
    for row in rows:
        record = Entitlement.from_row(row).to_dict()
        record["template"] = row.get("templates")
        record["license"] = row.get("licenses")
        history.append(record)
    return history

def grant(user_id: str, product_id: str, license_id: str, max_downloads: int, order_id: Optional[str] = None) -> bool:
    """
    Accorde un droit (max_downloads copié depuis la licence au moment du grant).
    Retourne True si créé, False si le droit existait déjà (laissé intact).
    """
    created = repository.insert_entitlement({
        "user_id": str(user_id),
        "template_id": str(product_id),
        "license_id": str(license_id),
        "download_count": 0,
        "max_downloads": int(max_downloads),
        "order_id": order_id,
    })
    if created is None:
        logger.info("entitlements.grant exists user_id=%s template_id=%s license_id=%s", user_id, product_id, license_id)
        return False
    logger.info("entitlements.grant created user_id=%s template_id=%s license_id=%s max=%s",
                user_id, product_id, license_id, max_downloads)
    return True

def consume(record: Entitlement) -> Entitlement:
    """
    Consomme une unité de quota.
    - QuotaExceededError si maxDownloads fini et atteint (réévalué à chaque tentative).
    - Compare-and-set: deux requêtes concurrentes à une unité du quota ne peuvent
      pas réussir toutes les deux; la perdante relit l'état et échoue sur le quota.
    """
    current = record
    for _ in range(CAS_ATTEMPTS):
        if current.exhausted:
            raise QuotaExceededError(
                f"Limite de téléchargements atteinte ({current.max_downloads}) pour cette licence",
                details={"downloadCount": current.download_count, "maxDownloads": current.max_downloads},
            )
        now = datetime.now(timezone.utc).isoformat()
        row = repository.increment_download_count(current.id, current.download_count, now)
        if row:
            return Entitlement.from_row(row)
        fresh = repository.get_entitlement(current.user_id, current.product_id, current.license_id)
        if not fresh:
            break
        current = Entitlement.from_row(fresh)
    logger.warning("entitlements.consume contention id=%s", record.id)
    raise ConflictError("Téléchargement concurrent en cours, réessayez", code="download_contention")
