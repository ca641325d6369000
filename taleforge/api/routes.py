from __future__ import annotations

import json
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status

from taleforge.agents.factory import create_default_agent
from taleforge.api.deps import get_redis
from taleforge.api.models import (
    NarrateRequest,
    SessionCreateRequest,
    SessionListResponse,
    SessionResponse,
    SpeakerLineOut,
    TurnLogEntry,
    TurnLogResponse,
    TurnRequest,
    TurnResponse,
)
from taleforge.core.decode import decode_event_items
from taleforge.core.events import event_tag
from taleforge.core.segmenter import split_response
from taleforge.lock import SessionBusy
from taleforge.narrator import NarrationError, request_narration
from taleforge.prompts import PromptLoadError
from taleforge.session_store import (
    SessionNotFound,
    apply_turn,
    create_session,
    delete_session,
    list_sessions,
    require_session,
)
from taleforge.streams import TurnLog, read_turn_log
from taleforge.turn_processing.projection import project_snapshot
from taleforge.turn_processing.turns import TurnResult
from taleforge.websocket_hub import hub

router = APIRouter()


def _turn_response(session_id: UUID, result: TurnResult, *, response_text: str | None = None) -> TurnResponse:
    return TurnResponse(
        session_id=session_id,
        lines=[SpeakerLineOut.from_line(line) for line in result.lines],
        events=[event_tag(e) for e in result.events],
        outcomes=result.outcomes,
        decode_error=result.decode_error,
        snapshot=result.snapshot,
        response_text=response_text,
    )


def _run_turn(
    *,
    r: redis.Redis,
    session_id: UUID,
    narration: str,
    events_text: str | None = None,
    events: list | None = None,
) -> TurnResult:
    try:
        return apply_turn(
            r=r,
            session_id=session_id,
            narration=narration,
            events_text=events_text,
            events=decode_event_items(events) if events is not None else None,
        )
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except SessionBusy as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


async def _broadcast_update(session_id: UUID, result: TurnResult) -> None:
    await hub.broadcast(
        str(session_id),
        {"type": "session_updated", "session_id": str(session_id), "revision": result.snapshot.revision},
    )


@router.websocket("/ws/session/{session_id}")
async def session_updates_ws(websocket: WebSocket, session_id: UUID) -> None:
    sid = str(session_id)
    await hub.connect(sid, websocket)

    try:
        # Keep the socket open; clients may send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(sid, websocket)
    except Exception:
        await hub.disconnect(sid, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/session", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session_route(
    payload: SessionCreateRequest | None = None, r: redis.Redis = Depends(get_redis)
) -> SessionResponse:
    record = create_session(r=r, player_name=payload.player_name if payload is not None else "Player")
    return SessionResponse(session_id=record.session_id, snapshot=project_snapshot(record.store))


@router.get("/session", response_model=SessionListResponse)
async def list_sessions_route(r: redis.Redis = Depends(get_redis)) -> SessionListResponse:
    return SessionListResponse(sessions=list_sessions(r=r))


@router.get("/session/{session_id}", response_model=SessionResponse)
async def get_session_route(session_id: UUID, r: redis.Redis = Depends(get_redis)) -> SessionResponse:
    try:
        record = require_session(r=r, session_id=session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return SessionResponse(session_id=record.session_id, snapshot=project_snapshot(record.store))


@router.delete("/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_route(session_id: UUID, r: redis.Redis = Depends(get_redis)) -> Response:
    try:
        delete_session(r=r, session_id=session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/session/{session_id}/turn", response_model=TurnResponse)
async def turn_route(session_id: UUID, payload: TurnRequest, r: redis.Redis = Depends(get_redis)) -> TurnResponse:
    if payload.text is not None:
        narration, events_text = split_response(payload.text)
        result = _run_turn(r=r, session_id=session_id, narration=narration, events_text=events_text)
    elif isinstance(payload.events, list):
        result = _run_turn(r=r, session_id=session_id, narration=payload.narration, events=payload.events)
    else:
        result = _run_turn(r=r, session_id=session_id, narration=payload.narration, events_text=payload.events)

    if result.decode_error is None:
        await _broadcast_update(session_id, result)
    return _turn_response(session_id, result)


@router.post("/session/{session_id}/narrate", response_model=TurnResponse)
async def narrate_route(session_id: UUID, payload: NarrateRequest, r: redis.Redis = Depends(get_redis)) -> TurnResponse:
    try:
        record = require_session(r=r, session_id=session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    try:
        text = await request_narration(
            agent=create_default_agent(),
            prompt=payload.prompt,
            system_prompt=payload.system_prompt,
            snapshot=project_snapshot(record.store),
        )
    except (NarrationError, PromptLoadError) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    narration, events_text = split_response(text)
    result = _run_turn(r=r, session_id=session_id, narration=narration, events_text=events_text)

    if result.decode_error is None:
        await _broadcast_update(session_id, result)
    return _turn_response(session_id, result, response_text=text)


@router.get("/session/{session_id}/turn_log", response_model=TurnLogResponse)
async def turn_log_route(session_id: UUID, count: int = 50, r: redis.Redis = Depends(get_redis)) -> TurnLogResponse:
    try:
        require_session(r=r, session_id=session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    entries: list[TurnLogEntry] = []
    for stream_id, fields in read_turn_log(r=r, log=TurnLog(session_id=str(session_id)), count=count):
        entries.append(
            TurnLogEntry(
                id=stream_id,
                revision=int(fields.get("revision", 0)),
                index=int(fields.get("index", 0)),
                event_type=fields.get("event_type", ""),
                status=fields.get("status", ""),
                reason=fields.get("reason", ""),
                event=json.loads(fields.get("event") or "{}"),
            )
        )
    return TurnLogResponse(session_id=session_id, entries=entries)
