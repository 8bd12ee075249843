from fastapi import APIRouter

from codeskins.catalog import service as catalog_service
from codeskins.utils.responses import ok

router = APIRouter(prefix="/api/v1/templates", tags=["Templates"])

@router.get("/{template_id}/availability")
def template_availability(template_id: str):
    """
    Disponibilité d'un template, recalculée à chaque lecture.
    - Retour: {available, salesCount, maxSales, remainingSales} (-1 = illimité)
    - Erreurs: 404 si le template n'existe pas
    """
    return ok(catalog_service.availability_summary(template_id))
