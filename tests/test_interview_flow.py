import asyncio

import pytest

from mockinterview.core.exceptions import ConflictError, ResponseParseError, UpstreamServiceError
from mockinterview.db.database import SessionLocal
from mockinterview.schemas.interview import GenerationResult, ScoreResult
from mockinterview.services.audio import Recording
from mockinterview.services.interview_flow import (
    BUSY,
    CLOSING_MESSAGE,
    INTRO_QUESTION,
    AnswerSubmitted,
    CollectingSink,
    Stage,
    Start,
)
from mockinterview.services.sessions import SessionService

AUDIO = {"audio": ("answer.webm", b"candidate-audio", "audio/webm")}


def start(client, session_id):
    resp = client.post(f"/api/interview/{session_id}/start", params={"userId": "user-1"})
    assert resp.status_code == 200
    return resp.json()


def answer(client, session_id):
    resp = client.post(f"/api/interview/{session_id}/answer", files=AUDIO)
    assert resp.status_code == 200
    return resp.json()


def test_start_greets_and_asks_intro(client, session_id, speech, questions_of):
    state = start(client, session_id)

    assert state["stage"] == "questions"
    assert state["questionIndex"] == 0
    greeting = state["utterances"][0]
    assert greeting["text"].startswith("Hello! I'm your AI interviewer today.")
    assert "Backend Engineer" in greeting["text"]
    assert greeting["audio"] is not None

    questions = questions_of(session_id)
    assert [q["question"] for q in questions] == [INTRO_QUESTION]
    assert client.get(f"/api/sessions/{session_id}").json()["status"] == "in-progress"


def test_start_requires_configuration(client, context, session_id):
    context.config_store.path.unlink()
    resp = client.post(f"/api/interview/{session_id}/start", params={"userId": "user-1"})
    assert resp.status_code == 400


def test_start_unknown_session(client, configured):
    resp = client.post("/api/interview/missing/start", params={"userId": "user-1"})
    assert resp.status_code == 404


def test_answer_before_start(client, session_id):
    resp = client.post(f"/api/interview/{session_id}/answer", files=AUDIO)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Interview not started"}


def test_answer_adds_exactly_one_question(client, session_id, gemini, questions_of):
    start(client, session_id)
    client.post("/api/users", json={"id": "user-1", "name": "Sam", "email": "sam@example.com"})

    seen = []
    gemini.on_generate = lambda: seen.append(questions_of(session_id)[0]["answer"])
    gemini.results.append(GenerationResult(
        response="Thanks!", next_question="Tell me about X", transcript="I build APIs",
    ))

    state = answer(client, session_id)

    assert seen == ["Processing..."]
    assert [u["text"] for u in state["utterances"]] == ["Thanks!", "Tell me about X"]
    assert state["questionIndex"] == 1

    questions = questions_of(session_id)
    assert len(questions) == 2
    assert questions[0]["answer"] == "I build APIs"
    assert questions[1]["question"] == "Tell me about X"
    assert questions[1]["answer"] is None

    call = gemini.calls[0]
    assert call["audio"] == b"candidate-audio"
    assert call["job_description"] == "Build Python services"
    assert INTRO_QUESTION in call["previous_questions"]
    assert '"name":"Sam"' in call["user_profile"]


def test_missing_transcript_is_marked(client, session_id, gemini, questions_of):
    start(client, session_id)
    gemini.results.append(GenerationResult(response="Ok.", next_question="Next?"))
    answer(client, session_id)
    assert questions_of(session_id)[0]["answer"] == "(no transcript available)"


def test_parse_error_leaves_session_untouched(client, context, session_id, gemini, questions_of):
    start(client, session_id)
    before = questions_of(session_id)
    gemini.results.append(ResponseParseError("Failed to extract JSON from response"))

    state = answer(client, session_id)

    assert state["stage"] == "questions"
    assert state["questionIndex"] == 0
    assert state["utterances"] == []
    assert state["notifications"] == ["Failed to process your response. Please try again."]
    assert questions_of(session_id) == before

    snapshot = client.get(f"/api/interview/{session_id}").json()
    assert snapshot["notifications"] == ["Failed to process your response. Please try again."]


def test_speech_failure_does_not_stop_interview(client, session_id, speech, questions_of):
    speech.error = UpstreamServiceError("Failed to generate speech")
    state = start(client, session_id)

    assert state["stage"] == "questions"
    assert state["utterances"][0]["audio"] is None
    assert "Failed to generate speech. Please try again." in state["notifications"]
    assert len(questions_of(session_id)) == 1


def test_quota_completes_and_scores(client, session_id, gemini, questions_of):
    start(client, session_id)
    answer(client, session_id)
    answer(client, session_id)
    state = answer(client, session_id)

    assert state["stage"] == "completed"
    assert state["redirect"] == f"/results/{session_id}"
    assert [u["text"] for u in state["utterances"]] == ["Thanks!", CLOSING_MESSAGE]

    session = client.get(f"/api/sessions/{session_id}").json()
    assert session["status"] == "completed"
    assert session["score"] == 85
    assert session["feedback"] == "Solid answers"
    assert session["completedAt"] is not None
    assert len(session["questions"]) == 3
    assert len(gemini.scored[0]) == 3

    # nothing more is appended once the session is completed
    state = answer(client, session_id)
    assert state["stage"] == "completed"
    assert state["notifications"] == ["Nothing to do in the completed stage"]
    assert len(questions_of(session_id)) == 3
    assert len(gemini.calls) == 3


def test_failed_scoring_can_be_retried(client, session_id, gemini):
    gemini.score = UpstreamServiceError("Failed to process with Gemini")
    start(client, session_id)
    answer(client, session_id)
    answer(client, session_id)
    state = answer(client, session_id)

    assert state["stage"] == "outro"
    assert state["notifications"] == ["Failed to complete the interview. Please try again."]
    assert client.get(f"/api/sessions/{session_id}").json()["status"] == "in-progress"

    gemini.score = ScoreResult(score=85, feedback="Solid answers")
    resp = client.post(f"/api/interview/{session_id}/finish")
    assert resp.json()["stage"] == "completed"
    assert client.get(f"/api/sessions/{session_id}").json()["score"] == 85


def test_restart_resumes_open_question(client, session_id, questions_of):
    start(client, session_id)
    answer(client, session_id)

    state = start(client, session_id)

    assert state["stage"] == "questions"
    assert state["questionIndex"] == 1
    assert state["utterances"][0]["text"] == "Welcome back! Let's continue where we left off. Tell me about X"
    assert len(questions_of(session_id)) == 2


def test_second_action_while_busy_is_rejected(context, session_id):
    async def scenario():
        flow = context.new_flow(session_id, "user-1")
        async with flow._lock:
            with pytest.raises(ConflictError):
                await flow.advance(Start(), CollectingSink())
        return flow

    flow = asyncio.run(scenario())
    assert flow.stage == Stage.INTRO


def test_cancelled_flow_discards_its_step(context, session_id, questions_of):
    async def scenario():
        flow = context.new_flow(session_id, "user-1")
        flow.cancel()
        sink = CollectingSink()
        return flow, await flow.advance(Start(), sink), sink

    flow, stage, sink = asyncio.run(scenario())
    assert stage == Stage.INTRO
    assert sink.utterances == []
    assert questions_of(session_id) == []


def test_new_flow_cancels_previous(context, session_id):
    first = context.new_flow(session_id, "user-1")
    second = context.new_flow(session_id, "user-1")
    assert first.token.cancelled
    assert not second.token.cancelled
    assert context.flows.get(session_id) is second


# ============================================
# WebSocket
# ============================================

def _next(ws, kind):
    while True:
        message = ws.receive_json()
        if message["type"] == kind:
            return message


def test_websocket_interview_round(client, session_id, questions_of):
    with client.websocket_connect(f"/api/interview/{session_id}/ws?userId=user-1") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"type": "start"})
        greeting = _next(ws, "speech")
        assert greeting["text"].startswith("Hello!")
        ws.send_json({"type": "playback_ended"})
        assert _next(ws, "state")["stage"] == "questions"

        ws.send_json({"type": "start_recording"})
        assert _next(ws, "recording_ack")["recording"] is True
        ws.send_bytes(b"chunk-1")
        ws.send_bytes(b"chunk-2")
        ws.send_json({"type": "stop_recording"})
        assert _next(ws, "recording_ack") == {"type": "recording_ack", "recording": False, "size": 14}

        assert _next(ws, "speech")["text"] == "Thanks!"
        ws.send_json({"type": "playback_ended"})
        assert _next(ws, "speech")["text"] == "Tell me about X"
        ws.send_json({"type": "playback_ended"})

        state = _next(ws, "state")
        assert state["questionIndex"] == 1

    assert len(questions_of(session_id)) == 2


def test_websocket_rejects_unconfigured_client(client):
    with client.websocket_connect("/api/interview/any/ws?userId=user-1") as ws:
        message = ws.receive_json()
    assert message == {"type": "notification", "message": "Please configure your API settings first"}


def test_websocket_stop_without_audio(client, session_id):
    with client.websocket_connect(f"/api/interview/{session_id}/ws?userId=user-1") as ws:
        ws.send_json({"type": "start_recording"})
        _next(ws, "recording_ack")
        ws.send_json({"type": "stop_recording"})
        assert _next(ws, "notification")["message"] == "No audio provided"


def test_websocket_playback_error_is_reported(client, session_id):
    with client.websocket_connect(f"/api/interview/{session_id}/ws?userId=user-1") as ws:
        ws.send_json({"type": "start"})
        _next(ws, "speech")
        ws.send_json({"type": "playback_error", "message": "autoplay blocked"})

        note = _next(ws, "notification")
        assert note["message"] == "Failed to play audio. Please check your audio settings."
        assert _next(ws, "state")["stage"] == "questions"


def test_cancel_during_generation_restores_answer(client, context, session_id, gemini, questions_of):
    start(client, session_id)
    gemini.on_generate = lambda: context.flows.get(session_id).cancel()

    state = answer(client, session_id)

    assert state["questionIndex"] == 0
    assert state["utterances"] == []
    questions = questions_of(session_id)
    assert len(questions) == 1
    assert questions[0]["answer"] is None


def test_interrupted_generation_restores_answer(client, context, session_id, gemini, questions_of):
    start(client, session_id)
    flow = context.flows.get(session_id)
    gemini.results.append(asyncio.CancelledError())

    async def scenario():
        with pytest.raises(asyncio.CancelledError):
            await flow.advance(AnswerSubmitted(Recording(data=b"audio")), CollectingSink())

    asyncio.run(scenario())

    assert questions_of(session_id)[0]["answer"] is None
    assert not flow._lock.locked()


def test_session_deleted_during_generation(client, session_id, gemini):
    start(client, session_id)

    def delete_session():
        db = SessionLocal()
        try:
            SessionService.delete_session(db, session_id)
        finally:
            db.close()

    gemini.on_generate = delete_session
    gemini.results.append(ResponseParseError("Failed to extract JSON from response"))

    state = answer(client, session_id)
    assert state["notifications"] == ["Failed to process your response. Please try again."]
    assert client.get(f"/api/sessions/{session_id}").status_code == 404


def test_websocket_rejects_action_while_step_runs(client, session_id):
    with client.websocket_connect(f"/api/interview/{session_id}/ws?userId=user-1") as ws:
        ws.send_json({"type": "start"})
        _next(ws, "speech")

        ws.send_json({"type": "finish"})
        assert _next(ws, "notification")["message"] == BUSY

        # the running step still completes once playback ends
        ws.send_json({"type": "playback_ended"})
        assert _next(ws, "state")["stage"] == "questions"


def test_websocket_disconnect_stops_waiting_step(client, context, session_id):
    with client.websocket_connect(f"/api/interview/{session_id}/ws?userId=user-1") as ws:
        ws.send_json({"type": "start"})
        _next(ws, "speech")
        flow = context.flows.get(session_id)
        ws.send_json({"type": "finish"})
        _next(ws, "notification")

    assert flow.token.cancelled
    assert not flow._lock.locked()
    assert context.flows.get(session_id) is None
