from dataclasses import dataclass
from typing import Any, Dict, Optional

from codeskins.catalog.models import UNLIMITED


@dataclass(frozen=True)
class Entitlement:
    """Ligne du ledger 'downloads': droit de téléchargement (user, template, licence)."""
    id: str
    user_id: str
    product_id: str
    license_id: str
    download_count: int
    max_downloads: int
    last_download_at: Optional[str] = None
    order_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Entitlement":
        return cls(
            id=str(row.get("id") or ""),
            user_id=str(row.get("user_id") or ""),
            product_id=str(row.get("template_id") or ""),
            license_id=str(row.get("license_id") or ""),
            download_count=int(row.get("download_count") or 0),
            max_downloads=int(row.get("max_downloads") if row.get("max_downloads") is not None else 1),
            last_download_at=row.get("last_download_at"),
            order_id=row.get("order_id"),
        )

    @property
    def unlimited(self) -> bool:
        return self.max_downloads == UNLIMITED

    @property
    def exhausted(self) -> bool:
        return not self.unlimited and self.download_count >= self.max_downloads

    @property
    def remaining(self) -> int:
        if self.unlimited:
            return UNLIMITED
        return max(self.max_downloads - self.download_count, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "templateId": self.product_id,
            "licenseId": self.license_id,
            "downloadCount": self.download_count,
            "maxDownloads": self.max_downloads,
            "remainingDownloads": self.remaining,
            "lastDownloadAt": self.last_download_at,
            "orderId": self.order_id,
        }
