"""
Effets d'une commande 'completed' (création par le webhook, promotion pending -> completed,
transition admin, ou réparation lors d'une relivraison):
- un droit de téléchargement par template acheté (maxDownloads copié depuis la licence)
- incrément conditionnel du compteur de ventes (refusé au-delà de maxSales)

L'avancement est enregistré dans orders.metadata['fulfillment']:
{"granted": [...], "salesCounted": [...], "skipped": [...], "complete": bool}.
- Les grants sont idempotents (clé unique): on peut les rejouer.
- Un template présent dans salesCounted n'est jamais recompté.
- complete=False tant qu'un grant a échoué; une relivraison relance alors fulfill().
"""
from typing import Dict, Set
import logging

from codeskins.catalog import service as catalog_service
from codeskins.entitlements import service as entitlements_service
from codeskins.orders import service as orders_service
from codeskins.orders.models import Order

logger = logging.getLogger(__name__)

def fulfill(order: Order) -> Dict[str, int]:
    """Retourne {granted, existing, skipped, oversold, failed} pour la journalisation et les tests."""
    progress = order.fulfillment
    granted: Set[str] = set(progress.get("granted") or [])
    counted: Set[str] = set(progress.get("salesCounted") or [])
    missing: Set[str] = set(progress.get("skipped") or [])
    summary = {"granted": 0, "existing": 0, "skipped": 0, "oversold": 0, "failed": 0}

    for product_id in dict.fromkeys(order.product_ids):
        try:
            product = catalog_service.get_product(product_id)
            license = catalog_service.get_license(product.license_id) if product else None
            if product is None or license is None:
                logger.error("fulfillment.skip order_id=%s template_id=%s: template ou licence introuvable",
                             order.id, product_id)
                missing.add(product_id)
                summary["skipped"] += 1
                continue
            created = entitlements_service.grant(
                order.customer_id, product.id, license.id, license.max_downloads, order_id=order.id
            )
            granted.add(product_id)
            summary["granted" if created else "existing"] += 1
            if product_id in counted:
                continue
            if not catalog_service.increment_sales_count(product.id, license.max_sales):
                logger.warning("fulfillment.oversell order_id=%s template_id=%s max_sales=%s",
                               order.id, product.id, license.max_sales)
                summary["oversold"] += 1
            counted.add(product_id)
        except Exception:
            logger.exception("fulfillment.failed order_id=%s template_id=%s", order.id, product_id)
            summary["failed"] += 1

    record = {
        "granted": sorted(granted),
        "salesCounted": sorted(counted),
        "skipped": sorted(missing - granted),
        "complete": summary["failed"] == 0,
    }
    try:
        orders_service.record_fulfillment(order, record)
    except Exception:
        logger.exception("fulfillment.record_failed order_id=%s", order.id)
    logger.info("fulfillment.done order_id=%s %s", order.id, summary)
    return summary
