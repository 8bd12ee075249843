"""
Download Gate: seul point d'entrée pour servir un fichier de template.
Ordre des contrôles: template -> licence -> droit -> quota, puis incrément atomique.
"""
from typing import Any, Dict, List, Optional, Tuple
import logging

from codeskins.catalog import service as catalog_service
from codeskins.catalog.models import LicenseTerms, Product
from codeskins.entitlements import service as entitlements_service
from codeskins.errors import LicenseNotFoundError, NotEntitledError, ProductNotFoundError

logger = logging.getLogger(__name__)

def _resolve(product_id: str, license_id: Optional[str]) -> Tuple[Product, LicenseTerms]:
    product = catalog_service.get_product(product_id)
    if product is None or not product.active:
        raise ProductNotFoundError(product_id)
    license = catalog_service.get_license(license_id or product.license_id)
    if license is None or not license.active:
        raise LicenseNotFoundError(license_id or product.license_id)
    return product, license

def request_download(user_id: str, product_id: str, license_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Autorise et comptabilise un téléchargement.
    - ProductNotFoundError / LicenseNotFoundError (404)
    - NotEntitledError (403): jamais acheté
    - QuotaExceededError (403): limite atteinte
    Le compteur de popularité du template est incrémenté séparément (best-effort).
    """
    product, license = _resolve(product_id, license_id)
    record = entitlements_service.find(user_id, product.id, license.id)
    if record is None:
        logger.info("downloads.denied not_entitled user_id=%s template_id=%s license_id=%s", user_id, product.id, license.id)
        raise NotEntitledError()
    updated = entitlements_service.consume(record)
    catalog_service.increment_download_counter(product.id)
    logger.info("downloads.granted user_id=%s template_id=%s count=%s/%s",
                user_id, product.id, updated.download_count, updated.max_downloads)
    return {
        "downloadUrl": product.file_url,
        "downloadCount": updated.download_count,
        "maxDownloads": updated.max_downloads,
        "remainingDownloads": updated.remaining,
    }

def download_status(user_id: str, product_id: str, license_id: Optional[str] = None) -> Dict[str, Any]:
    product, license = _resolve(product_id, license_id)
    record = entitlements_service.find(user_id, product.id, license.id)
    if record is None:
        return {
            "entitled": False,
            "canDownload": False,
            "downloadCount": 0,
            "maxDownloads": license.max_downloads,
            "remainingDownloads": 0,
            "licenseName": license.name,
        }
    return {
        "entitled": True,
        "canDownload": not record.exhausted,
        "downloadCount": record.download_count,
        "maxDownloads": record.max_downloads,
        "remainingDownloads": record.remaining,
        "licenseName": license.name,
    }

def download_history(user_id: str) -> List[Dict[str, Any]]:
    return entitlements_service.list_for_user(user_id)
