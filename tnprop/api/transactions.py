"""Transaction upload, progress and query endpoints."""

import asyncio
import json
import logging
import time
import uuid
from pathlib import Path, PurePosixPath

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from tnprop.config import MAX_UPLOAD_MB
from tnprop.models import TransactionStore
from tnprop.pipeline.cache import ResultCache
from tnprop.pipeline.errors import PipelineError, PipelineFatalError, UnreadableDocumentError
from tnprop.pipeline.orchestrator import process_document
from tnprop.pipeline.progress import ProgressStep, ProgressTracker
from tnprop.pipeline.quality import calculate_data_quality
from tnprop.pipeline.translation import translate_records

router = APIRouter()
logger = logging.getLogger(__name__)

# Security constants
MAX_FILE_SIZE = MAX_UPLOAD_MB * 1024 * 1024
PDF_MAGIC_BYTES = b"%PDF"

SSE_POLL_SECONDS = 0.2
SSE_MAX_SECONDS = 60 * 60


class TransactionFilters(BaseModel):
    buyerName: str | None = None
    sellerName: str | None = None
    houseNumber: str | None = None
    surveyNumber: str | None = None
    documentNumber: str | None = None

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in type(self).model_fields)

    def matches(self, record: dict) -> bool:
        """Case-insensitive substring on names, exact match on numbers."""
        if self.buyerName and self.buyerName.lower() not in (record.get("buyerName") or "").lower():
            return False
        if self.sellerName and self.sellerName.lower() not in (record.get("sellerName") or "").lower():
            return False
        if self.houseNumber and record.get("houseNumber") != self.houseNumber:
            return False
        if self.surveyNumber and record.get("surveyNumber") != self.surveyNumber:
            return False
        if self.documentNumber and record.get("documentNumber") != self.documentNumber:
            return False
        return True

    def as_store_kwargs(self) -> dict:
        return {
            "buyer_name": self.buyerName,
            "seller_name": self.sellerName,
            "house_number": self.houseNumber,
            "survey_number": self.surveyNumber,
            "document_number": self.documentNumber,
        }


# ── app.state accessors (overridable in tests) ──

def get_tracker(request: Request) -> ProgressTracker:
    return request.app.state.progress


def get_store(request: Request) -> TransactionStore:
    return request.app.state.store


def get_cache(request: Request) -> ResultCache | None:
    return request.app.state.cache


def _sanitize_filename(raw: str) -> str:
    """Strip path components and keep only the basename."""
    name = PurePosixPath(raw).name
    name = Path(name).name
    return name or "document.pdf"


def _new_session_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def _is_terminal(payload: dict) -> bool:
    step = payload.get("step")
    return step == ProgressStep.FAILED.value or (
        step == ProgressStep.COMPLETE.value and payload.get("percent", 0) >= 100
    )


def _safe_json_response(data: dict, status_code: int = 200) -> JSONResponse:
    """JSONResponse that tolerates datetime / Decimal values."""
    content = json.loads(json.dumps(data, default=str, ensure_ascii=False))
    return JSONResponse(content=content, status_code=status_code)


async def _read_pdf(file: UploadFile, safe_name: str) -> bytes:
    # Streaming read with a size cap
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(1024 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > MAX_FILE_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: {safe_name} exceeds {MAX_UPLOAD_MB} MB limit",
            )
        chunks.append(chunk)
    content = b"".join(chunks)

    if not content:
        raise HTTPException(status_code=400, detail=f"Empty file: {safe_name}")
    if not content[:4].startswith(PDF_MAGIC_BYTES):
        raise HTTPException(
            status_code=400,
            detail=f"File does not appear to be a valid PDF: {safe_name}",
        )
    return content


@router.post("/upload")
async def upload_pdf(
    pdf: UploadFile = File(...),
    buyerName: str | None = Form(None),
    sellerName: str | None = Form(None),
    houseNumber: str | None = Form(None),
    surveyNumber: str | None = Form(None),
    documentNumber: str | None = Form(None),
    session_id: str | None = Form(None),
    tracker: ProgressTracker = Depends(get_tracker),
    store: TransactionStore = Depends(get_store),
    cache: ResultCache | None = Depends(get_cache),
):
    """Extract transactions from an encumbrance-certificate PDF and store them.

    Pass ``session_id`` to follow progress on
    ``/progress/{session_id}/stream`` while the upload is running;
    otherwise one is generated and returned.
    """
    safe_name = _sanitize_filename(pdf.filename or "")
    if not safe_name.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail=f"Only PDF files are accepted. Got: {safe_name}")
    content = await _read_pdf(pdf, safe_name)

    filters = TransactionFilters(
        buyerName=buyerName, sellerName=sellerName, houseNumber=houseNumber,
        surveyNumber=surveyNumber, documentNumber=documentNumber,
    )
    session_id = session_id or _new_session_id()
    logger.info(f"Upload: {safe_name} ({len(content):,} bytes), session {session_id}")

    try:
        outcome = await process_document(
            content, safe_name, on_progress=tracker.sink(session_id), cache=cache,
        )
    except PipelineFatalError as e:
        logger.error(f"[{session_id}] Extraction failed: {e}")
        tracker.set_progress(session_id, ProgressStep.FAILED, 100, str(e))
        return _safe_json_response(
            {"success": False, "error": str(e), "sessionId": session_id}, status_code=502,
        )
    except UnreadableDocumentError as e:
        tracker.set_progress(session_id, ProgressStep.FAILED, 100, str(e))
        raise HTTPException(status_code=400, detail=f"Failed to process PDF: {e}")
    except PipelineError:
        logger.exception(f"[{session_id}] Pipeline error")
        tracker.set_progress(session_id, ProgressStep.FAILED, 100, "Internal pipeline error")
        raise

    # Run finished: the HTTP response carries the result from here on
    tracker.clear_progress(session_id)

    extracted = outcome.records
    base = {
        "success": True,
        "totalPages": outcome.total_pages,
        "cached": outcome.cached,
        "sessionId": session_id,
    }
    if not extracted:
        return _safe_json_response({**base, "message": "No transactions found in the PDF", "data": []})

    translated = translate_records(extracted, pdf_file_name=safe_name)
    filtered = translated if filters.is_empty() else [r for r in translated if filters.matches(r)]
    if not filtered:
        return _safe_json_response({
            **base,
            "message": "No transactions match the provided filters",
            "data": [],
            "totalExtracted": len(extracted),
            "totalFiltered": 0,
        })

    inserted = await asyncio.to_thread(store.create_many, filtered)

    return _safe_json_response({
        **base,
        "message": f"Successfully processed {len(inserted)} transactions",
        "data": inserted,
        "totalExtracted": len(extracted),
        "totalFiltered": len(filtered),
        "totalInserted": len(inserted),
        "dataQuality": calculate_data_quality(translated),
        "stats": outcome.stats,
    })


@router.get("/progress/{session_id}")
async def get_progress(session_id: str, tracker: ProgressTracker = Depends(get_tracker)):
    """Latest progress event for a running upload.

    A terminal event is returned once and then dropped.
    """
    event = tracker.get_progress(session_id)
    if event is None:
        raise HTTPException(status_code=404, detail="No progress for this session")
    if _is_terminal(event.to_dict()):
        tracker.clear_progress(session_id)
    return event.to_dict()


@router.get("/progress/{session_id}/stream")
async def stream_progress(session_id: str, tracker: ProgressTracker = Depends(get_tracker)):
    """SSE stream of progress events; ends after ``complete`` or ``failed``."""

    async def event_stream():
        deadline = time.monotonic() + SSE_MAX_SECONDS
        seen = False
        while time.monotonic() < deadline:
            event = tracker.get_progress(session_id)
            if event is not None:
                seen = True
                payload = event.to_dict()
            elif seen:
                # Entry removed after a successful run
                payload = {"step": ProgressStep.COMPLETE.value, "percent": 100, "message": "Done"}
            else:
                payload = {"step": ProgressStep.WAITING.value, "percent": 0, "message": "Initializing..."}
            yield f"data: {json.dumps(payload)}\n\n"

            if _is_terminal(payload):
                tracker.clear_progress(session_id)
                return
            await asyncio.sleep(SSE_POLL_SECONDS)

        yield f"data: {json.dumps({'error': 'Timeout waiting for progress'})}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.get("")
def list_transactions(
    filters: TransactionFilters = Depends(),
    store: TransactionStore = Depends(get_store),
):
    transactions = store.find_by_filters(**filters.as_store_kwargs())
    return _safe_json_response({"success": True, "data": transactions, "count": len(transactions)})


@router.get("/search")
def search_transactions(
    q: str = Query(..., min_length=1),
    store: TransactionStore = Depends(get_store),
):
    transactions = store.search(q)
    return _safe_json_response({"success": True, "data": transactions, "count": len(transactions)})


@router.get("/cache/stats")
def cache_stats(cache: ResultCache | None = Depends(get_cache)):
    if cache is None:
        return {"enabled": False, "size": 0, "entries": []}
    return {"enabled": True, **cache.stats()}


@router.delete("/cache")
def clear_cache(cache: ResultCache | None = Depends(get_cache)):
    removed = cache.clear() if cache is not None else 0
    return {"deleted": removed, "message": f"Cleared {removed} cache entr{'y' if removed == 1 else 'ies'}"}
