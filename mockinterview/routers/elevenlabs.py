from fastapi import APIRouter, Depends, Response

from mockinterview.core.context import AppContext, get_context
from mockinterview.core.exceptions import AppError
from mockinterview.schemas.interview import SpeechRequest

router = APIRouter(tags=["ElevenLabs"], prefix="/api/elevenlabs")


@router.post("")
async def text_to_speech(request: SpeechRequest, context: AppContext = Depends(get_context)):
    service = context.speech_service()  # raises before the text check when no key is configured
    if not request.text or not request.text.strip():
        raise AppError("Text is required", status_code=400)

    audio = await service.synthesize(request.text)
    return Response(
        content=audio,
        media_type="audio/mpeg",
        headers={"Cache-Control": "no-cache"},
    )
