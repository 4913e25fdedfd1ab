"""
Gemini collaborator

Generates the interviewer's next utterance from the candidate's recorded answer
and scores the finished interview. The model is asked for bare JSON but often
wraps it in markdown, so the object is cut out of the text before parsing.
"""

import json
import logging
from typing import Any

from google import genai
from google.genai import types
from pydantic import ValidationError

from mockinterview.core.exceptions import ConfigurationError, ResponseParseError, UpstreamServiceError
from mockinterview.schemas.interview import GenerationResult, ScoreResult

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPE = "audio/webm"


def extract_json_object(text: str) -> dict[str, Any]:
    """Return the JSON object spanning the first ``{`` to the last ``}`` of ``text``."""
    cleaned = (text or "").replace("```json", "").replace("```", "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise ResponseParseError("Failed to extract JSON from response")

    try:
        data = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Malformed JSON in response: {e.msg}") from e
    if not isinstance(data, dict):
        raise ResponseParseError("Response JSON is not an object")
    return data


def build_question_prompt(job_description: str, previous_questions: str | None, user_profile: str | None) -> str:
    parts = [
        "You are an AI interviewer conducting a job interview.",
        "IMPORTANT: Return ONLY the JSON object, with no additional text, markdown formatting, or explanations.",
        "The response should start with { and end with }.",
        f"Job Description: {job_description}",
    ]
    if user_profile:
        parts.append(f"Candidate Profile: {user_profile}")
    if previous_questions:
        parts.append(f"Previous questions and answers in this interview: {previous_questions}")
    parts.append(
        "The candidate has just responded in the attached audio. Transcribe their answer, "
        "analyze it and provide your next question.\n"
        "Return the data in this exact JSON structure:\n"
        "{\n"
        '  "transcript": "The candidate\'s answer, transcribed from the audio",\n'
        '  "response": "Your response as the interviewer",\n'
        '  "nextQuestion": "Your follow-up question based on the candidate\'s answer, '
        'job description, and their profile"\n'
        "}\n"
        "Guidelines:\n"
        "1. Make your questions relevant to both the job description and the candidate's background when available\n"
        "2. Keep responses concise and professional\n"
        "3. DO NOT include any text before or after the JSON object\n"
        "4. DO NOT use markdown code blocks or formatting"
    )
    return "\n\n".join(parts)


def build_score_prompt(job_description: str, questions: list[dict], user_profile: dict | None) -> str:
    parts = [
        "You are an AI interview evaluator. Your task is to evaluate the candidate's interview "
        "performance and provide structured feedback.",
        "IMPORTANT: Return ONLY the JSON object, with no additional text, markdown formatting, or explanations.",
        "The response should start with { and end with }.",
        f"Job Description: {job_description}",
    ]
    if user_profile:
        parts.append(f"Candidate Profile: {json.dumps(user_profile)}")
    parts.append(f"Interview Questions and Answers:\n{json.dumps(questions)}")
    parts.append(
        "Return the data in this exact JSON structure:\n"
        "{\n"
        '  "score": [A number between 0-100 representing the overall score],\n'
        '  "feedback": [Detailed feedback about the candidate\'s performance, strengths, and areas for improvement],\n'
        '  "questionFeedback": [An array of objects with feedback for each question]\n'
        "}\n"
        "Guidelines:\n"
        "1. Score should be a number between 0-100\n"
        "2. Feedback should be detailed and constructive\n"
        "3. Question feedback should be specific to each question\n"
        "4. Consider both job requirements and candidate's background\n"
        "5. DO NOT include any text before or after the JSON object\n"
        "6. DO NOT use markdown code blocks or formatting"
    )
    return "\n\n".join(parts)


class GeminiService:
    def __init__(self, api_key: str | None, model: str):
        if not api_key:
            raise ConfigurationError("Gemini API key not configured")
        self.model = model
        self.client = genai.Client(api_key=api_key)

    async def _generate(self, contents: list) -> str:
        try:
            response = await self.client.aio.models.generate_content(model=self.model, contents=contents)
        except Exception as e:
            logger.exception(f"Gemini call failed: {e}")
            raise UpstreamServiceError("Failed to process with Gemini") from e
        return response.text or ""

    async def generate_next_question(
        self,
        audio: bytes,
        job_description: str,
        previous_questions: str | None = None,
        user_profile: str | None = None,
        mime_type: str = AUDIO_MIME_TYPE,
    ) -> GenerationResult:
        """Ask the model for its reaction to the recorded answer and the next question.

        ``previous_questions`` and ``user_profile`` are passed through as JSON text.
        """
        prompt = build_question_prompt(job_description, previous_questions, user_profile)
        text = await self._generate([prompt, types.Part.from_bytes(data=audio, mime_type=mime_type)])
        data = extract_json_object(text)
        try:
            return GenerationResult.model_validate(data)
        except ValidationError as e:
            raise ResponseParseError("Response is missing response/nextQuestion") from e

    async def score_interview(
        self,
        job_description: str,
        questions: list[dict],
        user_profile: dict | None = None,
    ) -> ScoreResult:
        prompt = build_score_prompt(job_description, questions, user_profile)
        text = await self._generate([prompt])
        data = extract_json_object(text)
        try:
            return ScoreResult.model_validate(data)
        except ValidationError as e:
            raise ResponseParseError("Response is missing score/feedback") from e
