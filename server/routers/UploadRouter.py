from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from server.dependencies.auth import verify_api_key
from server.models.responses import UploadResponse
from shared.models.ingest import UploadItem

router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("")
async def upload_files(
    request: Request,
    files: list[UploadFile] = File(...),
    owner_id: str = Form(...),
    folder_id: str | None = Form(default=None),
    _: None = Depends(verify_api_key),
) -> UploadResponse:
    """Ingest uploaded files and archives, in the order they were sent.

    Args:
        request (Request): FastAPI request (provides app.state.services).
        files (list[UploadFile]): Documents and/or zip archives.
        owner_id (str): Uploading user.
        folder_id (str | None): Target folder for every file of this request.
        _ (None): Auth dependency result (unused).

    Returns:
        UploadResponse: One outcome per file plus counts.

    Raises:
        HTTPException: 413 if the request as a whole exceeds UPLOAD_MAX_TOTAL_BYTES.
    """
    helper_config = request.app.state.helper_config
    max_total = int(helper_config.get_number_val("UPLOAD_MAX_TOTAL_BYTES", default=500 * 1024 * 1024))

    items: list[UploadItem] = []
    total = 0
    for upload in files:
        content = await upload.read()
        total += len(content)
        if total > max_total:
            raise HTTPException(status_code=413, detail=f"Upload exceeds {max_total} bytes in total.")
        items.append(UploadItem(
            content=content,
            original_filename=upload.filename or "upload",
            declared_media_type=upload.content_type or "application/octet-stream",
            target_folder_id=folder_id or None,
        ))

    outcomes = await request.app.state.services.ingest_service.ingest_uploads(items, owner_id)
    return UploadResponse(
        outcomes=outcomes,
        created=sum(1 for o in outcomes if o.outcome == "created"),
        duplicates=sum(1 for o in outcomes if o.outcome == "duplicate"),
        errors=sum(1 for o in outcomes if o.outcome == "error"),
    )
