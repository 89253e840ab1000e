from fastapi import APIRouter, Request, Body, Depends
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.orm import Session

from core.auth import get_affiliate_id_from_request
from core.config import logger
from core.database import get_db
from core.errors import AffiliateError, NoChangesError, error_response
from utils.datastore import AffiliateStore
from utils.notifications import CollectingNotificationSink
from utils.preview import build_preview, render_preview_html
from utils.reconciler import RegistrationReconciler

router = APIRouter(prefix="/api/registrations", tags=["registrations"])


def _identified_reconciler(request: Request, db: Session, sink: CollectingNotificationSink):
    """Reconciler in UNKNOWN state for the caller, or an error response."""
    affiliate_id = get_affiliate_id_from_request(request)
    if not affiliate_id:
        return None, JSONResponse({"error": "Unauthorized"}, status_code=401)
    store = AffiliateStore(db)
    profile = store.get_profile(affiliate_id)
    if not profile:
        return None, JSONResponse({"error": "Unauthorized"}, status_code=401)
    rec = RegistrationReconciler(store, notifier=sink)
    rec.identify(profile.to_dict())
    return rec, None


@router.get("/current")
async def registrations_current(request: Request, db: Session = Depends(get_db)):
    """Resolve create vs. edit for the caller and return the form to show."""
    sink = CollectingNotificationSink()
    try:
        rec, denied = _identified_reconciler(request, db, sink)
        if denied:
            return denied
        baseline = rec.load()
    except AffiliateError as ex:
        return error_response(ex, sink.to_list())
    return {
        "ok": True,
        "mode": rec.state.value,
        "registration": baseline,
        "form": rec.prefilled_form(),
        "notifications": sink.to_list(),
    }


@router.post("/submit")
async def registrations_submit(request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    sink = CollectingNotificationSink()
    try:
        rec, denied = _identified_reconciler(request, db, sink)
        if denied:
            return denied
        rec.load()
        rec.restore_file_urls(payload)
        result = rec.submit(payload)
    except NoChangesError as ex:
        logger.info(f"[registrations.submit] no changes id={ex.details.get('registration_id')}")
        return {
            "ok": True,
            "mode": "edit",
            "changed": 0,
            "registrationId": ex.details.get("registration_id"),
            "message": ex.message,
            "notifications": sink.to_list(),
        }
    except AffiliateError as ex:
        logger.warning(f"[registrations.submit] {ex.code}")
        return error_response(ex, sink.to_list())

    return {
        "ok": True,
        "mode": result.mode,
        "changed": result.changed_count,
        "changedFields": result.changed_fields,
        "registrationId": result.registration_id,
        "registration": result.record,
        "notifications": sink.to_list(),
    }


def _owned_registration(request: Request, db: Session, registration_id: str):
    affiliate_id = get_affiliate_id_from_request(request)
    if not affiliate_id:
        return None, JSONResponse({"error": "Unauthorized"}, status_code=401)
    reg = AffiliateStore(db).get_registration(registration_id)
    if not reg or reg.afiliado_id != affiliate_id:
        return None, JSONResponse({"error": "not_found"}, status_code=404)
    return reg, None


@router.get("/{registration_id}/preview")
async def registrations_preview(registration_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        reg, denied = _owned_registration(request, db, registration_id)
    except AffiliateError as ex:
        return error_response(ex)
    if denied:
        return denied
    return {"ok": True, "preview": build_preview(reg.to_dict())}


@router.get("/{registration_id}/preview.html", response_class=HTMLResponse)
async def registrations_preview_html(registration_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        reg, denied = _owned_registration(request, db, registration_id)
    except AffiliateError as ex:
        return error_response(ex)
    if denied:
        return denied
    return HTMLResponse(render_preview_html(reg.to_dict()))
