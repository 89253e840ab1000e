import json
from typing import List, Optional

from fastapi import APIRouter, Request, UploadFile, File, Form, Body
from fastapi.responses import JSONResponse

from core.auth import get_affiliate_id_from_request
from core.config import MAX_FILES, logger
from core.errors import AffiliateError, ValidationError, error_response
from utils.notifications import CollectingNotificationSink
from utils.storage import get_storage
from utils.uploads import (
    UPLOAD_CATEGORIES,
    SelectedFile,
    UploadedFile,
    check_category,
    remove_uploaded_file,
    upload_batch,
    urls_of,
)

router = APIRouter(prefix="/api/uploads", tags=["upload"])


def _parse_previous(raw) -> List[UploadedFile]:
    """Accumulated entries as sent back by the client: [{name, url}, ...]."""
    if raw in (None, ""):
        return []
    items = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(items, list):
        raise ValueError("previous must be a list")
    out = []
    for it in items:
        if not isinstance(it, dict) or not it.get("url"):
            raise ValueError("each previous entry needs a url")
        out.append(UploadedFile(name=str(it.get("name") or it["url"]), url=str(it["url"])))
    return out


def _payload(category: str, files: List[UploadedFile], notifications: list) -> dict:
    return {
        "ok": True,
        "category": category,
        "files": [f.to_dict() for f in files],
        "urls": urls_of(files),
        "notifications": notifications,
    }


@router.get("/categories")
async def uploads_categories():
    return {
        "categories": [
            {"category": cat, "column": col, "accept": accept, "label": label}
            for cat, (col, accept, label) in UPLOAD_CATEGORIES.items()
        ]
    }


@router.post("/remove")
async def uploads_remove(
    request: Request,
    category: str = Body(..., embed=True),
    index: int = Body(..., embed=True),
    previous: Optional[list] = Body(None, embed=True),
):
    if not get_affiliate_id_from_request(request):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    try:
        check_category(category)
        current = _parse_previous(previous)
    except AffiliateError as ex:
        return error_response(ex)
    except ValueError as ex:
        return error_response(ValidationError({"previous": str(ex)}))
    # Local removal only; the stored blob is kept
    return _payload(category, remove_uploaded_file(current, index), [])


@router.post("/{category}")
async def uploads_batch(
    category: str,
    request: Request,
    files: List[UploadFile] = File(...),
    owner_name: str = Form(""),
    previous: Optional[str] = Form(None),
):
    affiliate_id = get_affiliate_id_from_request(request)
    if not affiliate_id:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    if len(files) > MAX_FILES:
        return JSONResponse({"error": f"too many files (max {MAX_FILES})"}, status_code=400)

    sink = CollectingNotificationSink()
    try:
        check_category(category)
        prior = _parse_previous(previous)
    except AffiliateError as ex:
        return error_response(ex)
    except ValueError as ex:
        return error_response(ValidationError({"previous": str(ex)}))

    selected = []
    for uf in files:
        raw = await uf.read()
        if not raw:
            continue
        selected.append(SelectedFile(name=uf.filename or "arquivo", data=raw, content_type=uf.content_type))

    try:
        merged = await upload_batch(get_storage(), owner_name, category, selected, previous=prior, notifier=sink)
    except AffiliateError as ex:
        logger.warning(f"[uploads.batch] {ex.code} affiliate={affiliate_id} category={category}")
        return error_response(ex, sink.to_list())

    return _payload(category, merged, sink.to_list())
