import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from mockinterview.core.context import AppContext, get_context
from mockinterview.core.exceptions import AudioCaptureError
from mockinterview.schemas.interview import GenerationResult, ScoreRequest, ScoreResult
from mockinterview.services.audio import DEFAULT_MIME_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Gemini"], prefix="/api/gemini")


@router.post("", response_model=GenerationResult, response_model_exclude_none=True, status_code=status.HTTP_200_OK)
async def next_question(
    audio: Optional[UploadFile] = File(None),
    jobDescription: str = Form(""),
    previousQuestions: Optional[str] = Form(None),
    userProfile: Optional[str] = Form(None),
    context: AppContext = Depends(get_context),
):
    """
    Forward a recorded answer to Gemini and return the interviewer's reply

    The model hears the audio directly, so no separate transcription step runs.
    """
    audio_bytes = await audio.read() if audio else b""
    if not audio_bytes:
        raise AudioCaptureError("No audio provided")

    service = context.question_service()
    return await service.generate_next_question(
        audio_bytes,
        jobDescription,
        previousQuestions,
        userProfile,
        mime_type=audio.content_type or DEFAULT_MIME_TYPE,
    )


@router.post("/score", response_model=ScoreResult, status_code=status.HTTP_200_OK)
async def score_interview(request: ScoreRequest, context: AppContext = Depends(get_context)):
    service = context.question_service()
    return await service.score_interview(
        request.job_description,
        [q.model_dump() for q in request.questions],
        request.user_profile,
    )
