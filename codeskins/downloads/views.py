# module codeskins.downloads.views
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from codeskins.downloads import service as downloads_service
from codeskins.utils.responses import ok
from codeskins.utils.security import require_user

router = APIRouter(prefix="/api/v1/downloads", tags=["Downloads"])


class DownloadRequest(BaseModel):
    templateId: str = Field(min_length=1)
    licenseId: Optional[str] = None


@router.post("")
def request_download(body: DownloadRequest, user: Dict[str, Any] = Depends(require_user)):
    """403 'not_entitled' si jamais acheté, 403 'quota_exceeded' si la limite est atteinte."""
    data = downloads_service.request_download(str(user["id"]), body.templateId, body.licenseId)
    return ok(data, message="Téléchargement autorisé")


@router.get("/history")
def download_history(user: Dict[str, Any] = Depends(require_user)):
    return ok({"downloads": downloads_service.download_history(str(user["id"]))})


@router.get("/status")
def download_status(
    templateId: str = Query(..., min_length=1),
    licenseId: Optional[str] = None,
    user: Dict[str, Any] = Depends(require_user),
):
    return ok(downloads_service.download_status(str(user["id"]), templateId, licenseId))
