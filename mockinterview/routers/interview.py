"""
Interview flow endpoints

Two ways to drive an interview:
- HTTP: one request per user action; the interviewer's speech comes back as
  base64 audio in the response and the client plays it afterwards.
- WebSocket: audio chunks are streamed while recording and every utterance is
  pushed as soon as it is ready. The server waits for ``playback_ended`` before
  it moves on, so the user never talks over the interviewer.
"""

import asyncio
import base64
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from mockinterview.core.context import AppContext, get_context, get_db
from mockinterview.core.exceptions import AppError, AudioCaptureError, ConflictError, NotFoundError
from mockinterview.schemas.interview import FlowState
from mockinterview.services.audio import DEFAULT_MIME_TYPE, AudioRecorder, Recording
from mockinterview.services.interview_flow import (
    BUSY,
    AnswerSubmitted,
    AudioSink,
    CollectingSink,
    Finish,
    InterviewFlow,
    PlaybackError,
    Start,
)
from mockinterview.services.sessions import SessionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Interview"], prefix="/api/interview")


def _require_flow(context: AppContext, session_id: str) -> InterviewFlow:
    flow = context.flows.get(session_id)
    if flow is None:
        raise NotFoundError("Interview not started")
    return flow


# ============================================
# HTTP
# ============================================

@router.post("/{session_id}/start", status_code=status.HTTP_200_OK, response_model=FlowState)
async def start_interview(
    session_id: str,
    userId: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    context.require_ready(userId)
    SessionService.get_session(db, session_id)

    flow = context.new_flow(session_id, userId)
    sink = CollectingSink()
    await flow.advance(Start(), sink)
    return flow.state(sink)


@router.post("/{session_id}/answer", status_code=status.HTTP_200_OK, response_model=FlowState)
async def submit_answer(
    session_id: str,
    audio: Optional[UploadFile] = File(None),
    context: AppContext = Depends(get_context),
):
    flow = _require_flow(context, session_id)
    data = await audio.read() if audio else b""
    if not data:
        raise AudioCaptureError("No audio provided")

    sink = CollectingSink()
    recording = Recording(data=data, mime_type=audio.content_type or DEFAULT_MIME_TYPE)
    await flow.advance(AnswerSubmitted(recording), sink)
    return flow.state(sink)


@router.post("/{session_id}/finish", status_code=status.HTTP_200_OK, response_model=FlowState)
async def finish_interview(session_id: str, context: AppContext = Depends(get_context)):
    flow = _require_flow(context, session_id)
    sink = CollectingSink()
    await flow.advance(Finish(), sink)
    return flow.state(sink)


@router.get("/{session_id}", status_code=status.HTTP_200_OK, response_model=FlowState)
async def get_interview_state(session_id: str, context: AppContext = Depends(get_context)):
    flow = _require_flow(context, session_id)
    state = flow.state()
    if flow.last_notification:
        state.notifications = [flow.last_notification]
    return state


# ============================================
# WebSocket
# ============================================

class WebSocketSink(AudioSink):
    """Pushes speech to the browser and blocks until the client reports playback ended."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.playback_ended = asyncio.Event()
        self.playback_failure: str | None = None

    async def play(self, text: str, audio: bytes | None) -> None:
        self.playback_ended.clear()
        self.playback_failure = None
        await self.websocket.send_json({
            "type": "speech",
            "text": text,
            "audio": base64.b64encode(audio).decode("ascii") if audio else None,
        })
        if audio:
            await self.playback_ended.wait()
            if self.playback_failure:
                raise PlaybackError(self.playback_failure)

    async def notify(self, message: str) -> None:
        await self.websocket.send_json({"type": "notification", "message": message})


async def _run_event(flow: InterviewFlow, event, sink: WebSocketSink, websocket: WebSocket) -> None:
    try:
        await flow.advance(event, sink)
    except ConflictError as e:
        await sink.notify(e.message)
        return

    await websocket.send_json({"type": "state", **flow.state().model_dump(mode="json", by_alias=True)})
    if flow.redirect:
        await websocket.send_json({"type": "redirect", "url": flow.redirect})


@router.websocket("/{session_id}/ws")
async def interview_websocket(
    websocket: WebSocket,
    session_id: str,
    userId: Optional[str] = Query(None),
):
    """
    Message formats:

    Client JSON messages:
    - start: begin or resume the interview
    - start_recording: open a new answer (optional ``mimeType``)
    - stop_recording: close the answer and submit it
    - finish: retry scoring after a failure
    - playback_ended: the last speech frame has finished playing
    - playback_error: the browser could not play it (optional ``message``)
    - ping

    Client binary messages are audio chunks of the open answer.

    Server JSON messages: speech, state, notification, redirect, pong, recording_ack
    """
    context: AppContext = websocket.app.state.context
    await websocket.accept()

    try:
        context.require_ready(userId)
    except AppError as e:
        await websocket.send_json({"type": "notification", "message": e.message})
        await websocket.close(code=1008)
        return

    flow = context.new_flow(session_id, userId)
    sink = WebSocketSink(websocket)
    recorder = AudioRecorder()
    pending: asyncio.Task | None = None

    async def submit(event) -> None:
        nonlocal pending
        if pending is not None and not pending.done():
            await sink.notify(BUSY)
            return
        pending = asyncio.create_task(_run_event(flow, event, sink, websocket))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            if message.get("bytes") is not None:
                try:
                    recorder.append(message["bytes"])
                except AudioCaptureError as e:
                    await sink.notify(e.message)
                continue

            try:
                data = json.loads(message.get("text") or "")
            except json.JSONDecodeError:
                await sink.notify("Invalid message")
                continue

            msg_type = data.get("type")

            if msg_type == "start":
                await submit(Start())

            elif msg_type == "start_recording":
                try:
                    recorder.mime_type = data.get("mimeType") or DEFAULT_MIME_TYPE
                    recorder.start()
                    await websocket.send_json({"type": "recording_ack", "recording": True})
                except AudioCaptureError as e:
                    await sink.notify(e.message)

            elif msg_type == "stop_recording":
                try:
                    recording = recorder.stop()
                except AudioCaptureError as e:
                    await sink.notify(e.message)
                    continue
                await websocket.send_json({"type": "recording_ack", "recording": False, "size": recording.size})
                await submit(AnswerSubmitted(recording))

            elif msg_type == "finish":
                await submit(Finish())

            elif msg_type == "playback_ended":
                sink.playback_ended.set()

            elif msg_type == "playback_error":
                sink.playback_failure = data.get("message") or "Playback failed"
                sink.playback_ended.set()

            elif msg_type == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        logger.info(f"Client disconnected from interview {session_id}")

    finally:
        recorder.cleanup()
        if context.flows.get(session_id) is flow:
            context.flows.discard(session_id)
        else:
            flow.cancel()
        # wake a step blocked on playback, then stop it and collect its outcome
        sink.playback_ended.set()
        if pending is not None and not pending.done():
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)
