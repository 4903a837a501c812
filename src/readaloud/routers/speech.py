"""REST API endpoints for the speak/interrupt commands."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from readaloud.schemas.speech import SessionStatus
from readaloud.services.document import TextBuffer
from readaloud.services.speech.session import SessionManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/speech", tags=["speech"])


class DocumentRequest(BaseModel):
    """Request body for loading a document."""

    text: str = Field(..., description="Full document text")
    cursor: int = Field(default=0, ge=0, description="Initial cursor offset")
    window_lines: int = Field(default=20, ge=1, le=500)


class DocumentResponse(BaseModel):
    length: int
    cursor: int


class SpeakRequest(BaseModel):
    """Request body for starting a session."""

    position: int | None = Field(
        default=None, ge=0, description="Start offset; defaults to the cursor"
    )


class InterruptResponse(BaseModel):
    interrupted: bool


def _get_manager(request: Request) -> SessionManager:
    manager = getattr(request.app.state, "speech_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Speech service not available")
    return manager


def _get_document(request: Request) -> TextBuffer:
    document = getattr(request.app.state, "document", None)
    if document is None or not document.is_live:
        raise HTTPException(status_code=404, detail="No document loaded")
    return document


@router.put("/document", response_model=DocumentResponse)
async def load_document(request: Request, body: DocumentRequest) -> DocumentResponse:
    """Replace the document, stopping any session reading the previous one."""
    manager = _get_manager(request)
    manager.interrupt()

    previous = getattr(request.app.state, "document", None)
    if previous is not None:
        previous.close()

    document = TextBuffer(body.text, cursor=body.cursor, window_lines=body.window_lines)
    request.app.state.document = document
    logger.info(f"Loaded document ({len(document)} chars)")
    return DocumentResponse(length=len(document), cursor=document.get_cursor())


@router.post("/speak", response_model=SessionStatus)
async def speak(request: Request, body: SpeakRequest | None = None) -> SessionStatus:
    """Start reading from the cursor (or ``position``), restarting any session."""
    manager = _get_manager(request)
    document = _get_document(request)
    document.touch()

    position = body.position if body is not None else None
    session = manager.speak(document, position)
    if session is None:
        return manager.status()
    return session.snapshot()


@router.post("/interrupt", response_model=InterruptResponse)
async def interrupt(request: Request) -> InterruptResponse:
    """Stop the active session, if any."""
    manager = _get_manager(request)
    return InterruptResponse(interrupted=manager.interrupt())


@router.get("/status", response_model=SessionStatus)
async def status(request: Request) -> SessionStatus:
    """Report the current or most recent session."""
    return _get_manager(request).status()
