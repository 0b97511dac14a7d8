import json
import logging
from typing import Any, List, Optional, Tuple

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import FileResponse, JSONResponse
from starlette.datastructures import UploadFile

from app.dependencies.auth import get_caller_identity
from app.dependencies.store import get_store
from app.repositories.store import DocumentStore, is_valid_id
from app.schemas.hazard_report import ReportValidationError, validate_hazard_report
from app.uploads import UploadRejected, remove_uploads, resolve_upload, save_uploads

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_REPORT_ID = "Invalid hazard report ID format"
REPORT_NOT_FOUND = "Hazard Report not found"


def _reply(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, **extra})


async def _read_payload(request: Request) -> Tuple[Any, List[UploadFile]]:
    """Split a request into body fields and uploaded ``images`` files.

    Multipart and urlencoded forms are read field by field; anything else
    is parsed as JSON. An empty body is an empty payload.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields: dict = {}
        files: List[UploadFile] = []
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key != "images":
                    raise ReportValidationError('"%s" is not allowed' % key)
                files.append(value)
            elif key == "images":
                fields.setdefault("images", []).append(value)
            else:
                fields[key] = value
        return fields, files

    body = await request.body()
    if not body.strip():
        return {}, []
    try:
        return json.loads(body), []
    except ValueError:
        raise ReportValidationError('"value" must be valid JSON')


@router.post("/hazardreports", status_code=status.HTTP_201_CREATED)
async def create_hazard_report(
    request: Request,
    user_id: Optional[str] = Depends(get_caller_identity),
    store: DocumentStore = Depends(get_store),
):
    stored: List[str] = []
    persisted: list = []
    try:
        try:
            fields, files = await _read_payload(request)
            stored = await save_uploads(files)
            if isinstance(fields, dict):
                fields = {**fields, "images": stored}
            value = validate_hazard_report(fields)
        except (ReportValidationError, UploadRejected) as e:
            logger.info("Rejected hazard report payload: %s", e.message)
            return _reply(status.HTTP_400_BAD_REQUEST, e.message)

        if not user_id:
            return _reply(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

        user = await store.find_user_by_id(user_id)
        if user is None:
            return _reply(status.HTTP_404_NOT_FOUND, "User not found")

        report = await store.create_report_for_user(
            value.model_dump(), user.id, on_inserted=persisted.append
        )
        logger.info("Hazard report %s created by user %s", report.id, user.id)
        return _reply(
            status.HTTP_201_CREATED,
            "Hazard Report created successfully",
            hazardReport=report.to_response(),
        )
    except Exception:
        logger.exception("Error creating hazard report")
        raise
    finally:
        # Once the report is stored its images stay, even if the owner update fails
        if not persisted:
            remove_uploads(stored)


@router.get("/hazardreports")
async def get_all_hazard_reports(store: DocumentStore = Depends(get_store)):
    try:
        reports = await store.find_reports()
        return _reply(
            status.HTTP_200_OK,
            "All Hazard Reports retrieved successfully",
            hazardReports=[r.to_response() for r in reports],
            count=len(reports),
        )
    except Exception:
        logger.exception("Error fetching hazard reports")
        raise


@router.get("/hazardreports/user/me")
async def get_user_hazard_count(
    user_id: Optional[str] = Depends(get_caller_identity),
    store: DocumentStore = Depends(get_store),
):
    """All reports owned by the caller, with their count."""
    try:
        if not user_id:
            return _reply(status.HTTP_401_UNAUTHORIZED, "Unauthorized: User ID is missing in JWT")
        if not is_valid_id(user_id):
            return _reply(status.HTTP_400_BAD_REQUEST, "Invalid User ID format")

        reports = await store.find_reports(user_id=user_id)
        logger.debug("Found %d hazard reports for user %s", len(reports), user_id)
        return _reply(
            status.HTTP_200_OK,
            "User Hazard Reports retrieved successfully",
            hazardReports=[r.to_response() for r in reports],
            count=len(reports),
        )
    except Exception:
        logger.exception("Error fetching user hazard reports")
        raise


@router.get("/hazardreports/images/{filename}")
async def get_hazard_report_image(filename: str):
    path = resolve_upload(filename)
    if path is None:
        return _reply(status.HTTP_404_NOT_FOUND, "Image not found")
    return FileResponse(path)


@router.get("/hazardreports/{report_id}")
async def get_hazard_report_by_id(report_id: str, store: DocumentStore = Depends(get_store)):
    try:
        if not is_valid_id(report_id):
            return _reply(status.HTTP_400_BAD_REQUEST, INVALID_REPORT_ID)

        report = await store.find_report_by_id(report_id)
        if report is None:
            return _reply(status.HTTP_404_NOT_FOUND, REPORT_NOT_FOUND)
        return _reply(status.HTTP_200_OK, "Hazard Report found", hazardreport=report.to_response())
    except Exception:
        logger.exception("Error fetching hazard report by ID")
        raise


@router.api_route("/hazardreports/{report_id}", methods=["PUT", "PATCH"])
async def update_hazard_report(
    report_id: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
):
    """PUT requires the full field set, PATCH accepts any subset.

    Either way only the fields sent are written.
    """
    try:
        try:
            fields, _ = await _read_payload(request)
            value = validate_hazard_report(fields, partial=request.method == "PATCH")
        except ReportValidationError as e:
            logger.info("Rejected hazard report update: %s", e.message)
            return _reply(status.HTTP_400_BAD_REQUEST, e.message)

        if not is_valid_id(report_id):
            return _reply(status.HTTP_400_BAD_REQUEST, INVALID_REPORT_ID)

        report = await store.update_report_by_id(report_id, value.model_dump(exclude_unset=True))
        if report is None:
            return _reply(status.HTTP_404_NOT_FOUND, REPORT_NOT_FOUND)
        return _reply(
            status.HTTP_200_OK,
            "Hazard Report updated successfully",
            hazardReport=report.to_response(),
        )
    except Exception:
        logger.exception("Error updating hazard report")
        raise


@router.delete("/hazardreports/{report_id}")
async def delete_hazard_report(report_id: str, store: DocumentStore = Depends(get_store)):
    # The owner's reports list keeps the id; nothing cascades from here.
    try:
        if not is_valid_id(report_id):
            return _reply(status.HTTP_400_BAD_REQUEST, INVALID_REPORT_ID)

        deleted = await store.delete_report_by_id(report_id)
        if deleted is None:
            return _reply(status.HTTP_404_NOT_FOUND, REPORT_NOT_FOUND)
        return _reply(status.HTTP_200_OK, "Hazard Report deleted successfully")
    except Exception:
        logger.exception("Error deleting hazard report")
        raise
