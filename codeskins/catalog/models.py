"""
Vues normalisées des collaborateurs catalogue (templates, licences).
Le cœur commerce consulte ces objets mais ne les possède pas.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

UNLIMITED = -1


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class LicenseTerms:
    id: str
    name: str
    active: bool
    price: float
    max_downloads: int = 1
    max_sales: int = UNLIMITED

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LicenseTerms":
        return cls(
            id=str(row.get("id") or ""),
            name=row.get("name") or "",
            active=bool(row.get("is_active", True)),
            price=_to_float(row.get("price")),
            max_downloads=_to_int(row.get("max_downloads"), 1),
            # 0 / null historiques = illimité
            max_sales=_to_int(row.get("max_sales"), UNLIMITED) or UNLIMITED,
        )

    @property
    def unlimited_downloads(self) -> bool:
        return self.max_downloads == UNLIMITED


@dataclass(frozen=True)
class Product:
    id: str
    title: str
    price: float
    active: bool
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    license_id: Optional[str] = None
    sales_count: int = 0
    downloads: int = 0
    file_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Product":
        status = (row.get("status") or "active").lower()
        return cls(
            id=str(row.get("id") or ""),
            title=row.get("title") or "Template",
            price=_to_float(row.get("price")),
            active=bool(row.get("is_active", True)) and status == "active",
            category=row.get("category"),
            tags=list(row.get("tags") or []),
            license_id=str(row["license_id"]) if row.get("license_id") else None,
            sales_count=_to_int(row.get("sales"), 0),
            downloads=_to_int(row.get("downloads"), 0),
            file_url=row.get("file_url"),
        )


def is_purchasable(product: Product, license: Optional[LicenseTerms]) -> bool:
    """
    Disponibilité dérivée, jamais stockée:
    actif ET (maxSales illimité OU salesCount < maxSales).
    """
    if not product.active:
        return False
    if license is None or license.max_sales == UNLIMITED:
        return True
    return product.sales_count < license.max_sales


def remaining_sales(product: Product, license: Optional[LicenseTerms]) -> int:
    if license is None or license.max_sales == UNLIMITED:
        return UNLIMITED
    return max(license.max_sales - product.sales_count, 0)
