from typing import Any, Dict, Optional
from fastapi.responses import JSONResponse

def ok(data: Optional[Dict[str, Any]] = None, message: Optional[str] = None) -> Dict[str, Any]:
    """
    Enveloppe standard {success, message?, data?} des réponses API.
    Retourne un dict (et non une Response) pour que FastAPI fusionne les cookies
    posés sur la Response injectée (ex: cookie de panier anonyme).
    """
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body

def fail(message: str, status_code: int, code: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if code:
        body["code"] = code
    if data:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=body)
