"""
Interview session lifecycle

    intro --Start--> questions --AnswerSubmitted (quota reached)--> outro --scored--> completed
                        ^   |
                        +---+ AnswerSubmitted (quota not reached)

``InterviewFlow.advance`` is the only entry point. Each step awaits its remote
calls one after the other (generate -> speak response -> settle -> speak next
question). A failed step is logged and reported to the sink; the stage does not
change and nothing is retried.
"""

import asyncio
import base64
import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Callable

from mockinterview.core.exceptions import AppError, ConflictError, NotFoundError
from mockinterview.models.models import SessionStatus
from mockinterview.schemas.interview import FlowState, Utterance
from mockinterview.schemas.session import SessionUpdate
from mockinterview.services.audio import Recording
from mockinterview.services.store import InterviewStore

logger = logging.getLogger(__name__)

INTRO_QUESTION = "Could you please introduce yourself?"
GREETING = (
    "Hello! I'm your AI interviewer today. I'll be asking you questions about {job_title}. "
    "Before we begin, could you please introduce yourself?"
)
CLOSING_MESSAGE = (
    "Thank you for participating in this interview. You've answered all my questions. "
    "I'll now provide you with feedback on your performance."
)
WELCOME_BACK = "Welcome back! Let's continue where we left off. {question}"
PROCESSING = "Processing..."
NO_TRANSCRIPT = "(no transcript available)"
BUSY = "The interview is still processing the previous action"


class Stage(str, enum.Enum):
    INTRO = "intro"
    QUESTIONS = "questions"
    OUTRO = "outro"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class AnswerSubmitted:
    recording: Recording


@dataclass(frozen=True)
class Finish:
    """Ask for the score again after a failed scoring call."""


class FlowCancelled(Exception):
    pass


class CancellationToken:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise FlowCancelled()


class PlaybackError(AppError):
    status_code = 400


class AudioSink:
    """Where the interviewer's speech goes; ``play`` returns once playback has ended."""

    async def play(self, text: str, audio: bytes | None) -> None:
        raise NotImplementedError

    async def notify(self, message: str) -> None:
        raise NotImplementedError


@dataclass
class CollectingSink(AudioSink):
    """Gathers utterances for an HTTP response; the client plays them afterwards."""

    utterances: list[Utterance] = field(default_factory=list)
    notifications: list[str] = field(default_factory=list)

    async def play(self, text: str, audio: bytes | None) -> None:
        encoded = base64.b64encode(audio).decode("ascii") if audio else None
        self.utterances.append(Utterance(text=text, audio=encoded))

    async def notify(self, message: str) -> None:
        self.notifications.append(message)


class InterviewFlow:
    def __init__(
        self,
        session_id: str,
        store: InterviewStore,
        question_service: Callable,
        speech_service: Callable,
        quota: int = 10,
        settle_delay: float = 1.5,
    ):
        self.session_id = session_id
        self.store = store
        self.question_service = question_service
        self.speech_service = speech_service
        self.quota = quota
        self.settle_delay = settle_delay

        self.stage = Stage.INTRO
        self.question_index = 0
        self.last_notification: str | None = None
        self.token = CancellationToken()
        self._lock = asyncio.Lock()

        self._handlers = {
            (Stage.INTRO, Start): self._start,
            (Stage.QUESTIONS, AnswerSubmitted): self._answer,
            (Stage.OUTRO, Finish): self._finish,
        }

    @property
    def redirect(self) -> str | None:
        return f"/results/{self.session_id}" if self.stage == Stage.COMPLETED else None

    def state(self, sink: CollectingSink | None = None) -> FlowState:
        return FlowState(
            session_id=self.session_id,
            stage=self.stage.value,
            question_index=self.question_index,
            utterances=sink.utterances if sink else [],
            notifications=sink.notifications if sink else [],
            redirect=self.redirect,
        )

    def cancel(self) -> None:
        self.token.cancel()

    async def advance(self, event, sink: AudioSink) -> Stage:
        """Feed one user action into the state machine and return the resulting stage."""
        if self._lock.locked():
            raise ConflictError(BUSY)

        async with self._lock:
            handler = self._handlers.get((self.stage, type(event)))
            if handler is None:
                logger.info(f"Session {self.session_id}: ignoring {type(event).__name__} in stage {self.stage.value}")
                await self._notify(sink, f"Nothing to do in the {self.stage.value} stage")
                return self.stage

            try:
                self.token.raise_if_cancelled()
                await handler(event, sink)
            except FlowCancelled:
                logger.info(f"Session {self.session_id}: step discarded after cancellation")
            except AppError as e:
                logger.error(f"Session {self.session_id}: {type(event).__name__} failed in {self.stage.value}: {e.message}")
                await self._notify(sink, self._failure_message(event, e))
            return self.stage

    # ============================================
    # Stage handlers
    # ============================================

    async def _start(self, event: Start, sink: AudioSink) -> None:
        session = self.store.set_current_session(self.session_id)
        if session.status == SessionStatus.COMPLETED:
            self._enter(Stage.COMPLETED)
            return

        if session.status == SessionStatus.NOT_STARTED:
            session = self.store.update_session(self.session_id, SessionUpdate(status=SessionStatus.IN_PROGRESS))

        if session.questions:
            # resumed after a reconnect, keep asking the open question
            self.question_index = len(session.questions) - 1
            self._enter(Stage.QUESTIONS)
            current = session.questions[self.question_index].question
            await self._speak(WELCOME_BACK.format(question=current), sink)
            return

        self.store.add_question(self.session_id, INTRO_QUESTION)
        self.question_index = 0
        self._enter(Stage.QUESTIONS)
        await self._speak(GREETING.format(job_title=session.job_title), sink)

    async def _answer(self, event: AnswerSubmitted, sink: AudioSink) -> None:
        session = self.store.get_session(self.session_id)
        current = session.questions[self.question_index] if self.question_index < len(session.questions) else None

        history = json.dumps([{"question": q.question, "answer": q.answer or ""} for q in session.questions])
        profile = self.store.fetch_user_profile()
        profile_json = profile.model_dump_json(by_alias=True) if profile else None

        if current:
            self.store.add_answer(self.session_id, current.id, PROCESSING)
        generated = False
        try:
            result = await self.question_service().generate_next_question(
                event.recording.data,
                session.job_description,
                history,
                profile_json,
                mime_type=event.recording.mime_type,
            )
            self.token.raise_if_cancelled()
            generated = True
        finally:
            # failed, cancelled or interrupted: put the previous answer back
            if current and not generated:
                self._restore_answer(current.id, current.answer)

        if current:
            self.store.add_answer(self.session_id, current.id, result.transcript or NO_TRANSCRIPT)

        await self._speak(result.response, sink)
        await asyncio.sleep(self.settle_delay)
        self.token.raise_if_cancelled()

        next_index = self.question_index + 1
        if next_index >= self.quota:
            self._enter(Stage.OUTRO)
            await self._speak(CLOSING_MESSAGE, sink)
            await self._score()
            return

        self.store.add_question(self.session_id, result.next_question)
        self.question_index = next_index
        await self._speak(result.next_question, sink)

    async def _finish(self, event: Finish, sink: AudioSink) -> None:
        await self._score()

    async def _score(self) -> None:
        session = self.store.get_session(self.session_id)
        profile = self.store.fetch_user_profile()
        result = await self.question_service().score_interview(
            session.job_description,
            [{"question": q.question, "answer": q.answer or ""} for q in session.questions],
            profile.model_dump(mode="json", by_alias=True) if profile else None,
        )
        self.token.raise_if_cancelled()

        self.store.set_score(self.session_id, result.score, result.feedback)
        self.store.complete_session(self.session_id)
        self._enter(Stage.COMPLETED)

    # ============================================
    # Helpers
    # ============================================

    async def _speak(self, text: str, sink: AudioSink) -> None:
        """Synthesize ``text`` and wait until the sink has played it.

        Speech is best effort: a failure is reported and the step carries on.
        """
        if not text:
            return

        audio = None
        try:
            audio = await self.speech_service().synthesize(text)
        except AppError as e:
            logger.warning(f"Session {self.session_id}: speech synthesis failed: {e.message}")
            await self._notify(sink, "Failed to generate speech. Please try again.")
        self.token.raise_if_cancelled()

        try:
            await sink.play(text, audio)
        except PlaybackError as e:
            logger.warning(f"Session {self.session_id}: playback failed: {e.message}")
            await self._notify(sink, "Failed to play audio. Please check your audio settings.")
        self.token.raise_if_cancelled()

    def _restore_answer(self, question_id: str, answer: str | None) -> None:
        try:
            self.store.add_answer(self.session_id, question_id, answer)
        except (NotFoundError, ConflictError) as e:
            # session deleted or completed meanwhile, nothing left to put back
            logger.info(f"Session {self.session_id}: answer not restored: {e.message}")

    async def _notify(self, sink: AudioSink, message: str) -> None:
        self.last_notification = message
        await sink.notify(message)

    def _enter(self, stage: Stage) -> None:
        if stage != self.stage:
            logger.info(f"Session {self.session_id}: {self.stage.value} -> {stage.value}")
        self.stage = stage

    def _failure_message(self, event, error: AppError) -> str:
        if isinstance(error, ConflictError):
            return error.message
        if isinstance(event, Start):
            return "Failed to start the interview. Please try again."
        if self.stage == Stage.OUTRO:
            return "Failed to complete the interview. Please try again."
        return "Failed to process your response. Please try again."


class FlowRegistry:
    """Live flows by session id. Dropping a flow cancels whatever it still has in flight."""

    def __init__(self):
        self._flows: dict[str, InterviewFlow] = {}

    def get(self, session_id: str) -> InterviewFlow | None:
        return self._flows.get(session_id)

    def session_ids(self) -> list[str]:
        return list(self._flows)

    def replace(self, flow: InterviewFlow) -> InterviewFlow:
        old = self._flows.get(flow.session_id)
        if old is not None and old is not flow:
            old.cancel()
        self._flows[flow.session_id] = flow
        return flow

    def discard(self, session_id: str) -> None:
        flow = self._flows.pop(session_id, None)
        if flow is not None:
            flow.cancel()
