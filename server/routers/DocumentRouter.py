from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from server.dependencies.auth import verify_api_key
from server.models.responses import DeleteResponse, ReindexResponse
from services.vector_index.VectorIndex import IndexingFailed
from shared.models.ingest import DuplicateCheckResult
from shared.storage.exceptions import NotFound

router = APIRouter(prefix="/documents", tags=["documents"])


@router.delete("/{document_id}")
async def delete_document(
    request: Request,
    document_id: str,
    hard: bool = False,
    _: None = Depends(verify_api_key),
) -> DeleteResponse:
    """Deactivate (or with ``hard=true`` remove) a document and drop its chunks."""
    try:
        document = await request.app.state.services.ingest_service.delete_document(document_id, hard=hard)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except IndexingFailed as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return DeleteResponse(document=document, hard=hard)


@router.post("/{document_id}/reindex")
async def reindex_document(
    request: Request,
    document_id: str,
    _: None = Depends(verify_api_key),
) -> ReindexResponse:
    """Re-extract and re-index a stored document, e.g. after an indexing failure."""
    try:
        count = await request.app.state.services.ingest_service.reindex_document(document_id)
    except (NotFound, FileNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except IndexingFailed as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return ReindexResponse(document_id=document_id, chunk_count=count)


@router.post("/check-duplicate")
async def check_duplicate(
    request: Request,
    file: UploadFile = File(...),
    owner_id: str = Form(...),
    _: None = Depends(verify_api_key),
) -> DuplicateCheckResult:
    """Report identical and similarly named documents without storing anything."""
    content = await file.read()
    return await request.app.state.services.ingest_service.check_duplicate(content, file.filename or "upload", owner_id)
