"""
Sérialisation/désérialisation des métadonnées Stripe (userId, productIds, quantities).
Stripe n'accepte que des chaînes: les listes et maps sont encodées en JSON.
"""
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

# module codeskins.payments.metadata
def make_metadata(user_id: str, quantities: Mapping[str, int]) -> Dict[str, str]:
    """
    Construit metadata pour la session Checkout:
    - userId: identifiant client
    - productIds: JSON list ordonnée des templates
    - quantities: JSON {templateId: quantité}
    """
    return {
        "userId": str(user_id),
        "productIds": json.dumps(list(quantities.keys())),
        "quantities": json.dumps({str(k): int(v) for k, v in quantities.items()}),
    }

def _load_json(raw: Any, default: Any) -> Any:
    if raw is None or raw == "":
        return default
    if isinstance(raw, (list, dict)):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("payments.metadata invalid json: %r", raw)
        return default

def extract_metadata(session: Dict[str, Any]) -> Tuple[Optional[str], List[str], Dict[str, int]]:
    """
    Extrait (user_id, product_ids, quantities) depuis data.object d'un event Stripe.
    - Tolérant: JSON invalide => liste/map vide (le reconciler passe alors au fallback).
    - productIds accepte aussi une liste CSV "p1,p2".
    """
    meta = (session or {}).get("metadata") or {}
    user_id = meta.get("userId") or meta.get("user_id") or None

    raw_ids = meta.get("productIds")
    if isinstance(raw_ids, str) and raw_ids and not raw_ids.lstrip().startswith("["):
        ids: Any = [p.strip() for p in raw_ids.split(",")]
    else:
        ids = _load_json(raw_ids, [])
    product_ids = [str(p) for p in ids if p] if isinstance(ids, list) else []

    raw_qty = _load_json(meta.get("quantities"), {})
    quantities: Dict[str, int] = {}
    if isinstance(raw_qty, dict):
        for k, v in raw_qty.items():
            try:
                q = int(v)
            except (TypeError, ValueError):
                continue
            if q > 0:
                quantities[str(k)] = q
    return (str(user_id) if user_id else None), product_ids, quantities
