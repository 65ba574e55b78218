"""
Gemini AI service for extracting quiz questions from uploaded documents
"""
import google.generativeai as genai
from app.config import settings
from app.exceptions import InvalidError, ServiceUnavailableError
import json
import logging
from typing import List, Dict, Any

logger = logging.getLogger(__name__)

# Configure Gemini API
genai.configure(api_key=settings.GEMINI_API_KEY)


EXTRACTION_PROMPT = """
Extract the multiple-choice and true/false questions from this document.
Return ONLY a JSON array (no markdown, no preamble). Every element must have
exactly this structure:

{{
  "questionNumber": 1,
  "questionText": "Question text here?",
  "questionType": "mcq",
  "options": ["Option A", "Option B", "Option C", "Option D"],
  "correctAnswer": "Option B",
  "explanation": "Short explanation of the answer"
}}

Rules:
- questionType is "mcq" or "true_false"
- correctAnswer must match one of the options exactly
- Return at most {limit} questions
"""


class GeminiService:
    """Service for Gemini AI quiz extraction"""

    def __init__(self):
        self.model = genai.GenerativeModel(settings.GEMINI_MODEL)

    def _ensure_configured(self) -> None:
        if not settings.GEMINI_API_KEY:
            raise ServiceUnavailableError("Quiz import is not configured", error="import_unavailable")

    def extract_from_pdf(self, file_path: str, display_name: str) -> List[Dict[str, Any]]:
        """
        Upload a PDF to the Gemini File API and extract its questions

        Args:
            file_path: Path to PDF file
            display_name: Display name for the file

        Returns:
            List of extracted question dictionaries
        """
        self._ensure_configured()
        try:
            uploaded_file = genai.upload_file(path=file_path, display_name=display_name)
            logger.info(f"Uploaded file to Gemini: {uploaded_file.name}")

            response = self.model.generate_content([uploaded_file, self._prompt()])
        except Exception as e:
            logger.error(f"Gemini extraction from PDF failed: {str(e)}")
            raise ServiceUnavailableError("Question extraction failed, try again later", error="import_failed")

        return self._parse_questions(response.text)

    def extract_from_text(self, text: str) -> List[Dict[str, Any]]:
        """Extract questions from plain text"""
        self._ensure_configured()
        if not text.strip():
            raise InvalidError("The uploaded file is empty", error="import_empty")

        try:
            response = self.model.generate_content(
                f"{self._prompt()}\nContent to process:\n---\n{text}\n---"
            )
        except Exception as e:
            logger.error(f"Gemini extraction from text failed: {str(e)}")
            raise ServiceUnavailableError("Question extraction failed, try again later", error="import_failed")

        return self._parse_questions(response.text)

    def _prompt(self) -> str:
        return EXTRACTION_PROMPT.format(limit=settings.MAX_IMPORT_QUESTIONS)

    def _parse_questions(self, response_text: str) -> List[Dict[str, Any]]:
        """Parse Gemini's JSON answer, capped at MAX_IMPORT_QUESTIONS"""
        cleaned = response_text.strip()

        # Remove markdown code blocks
        if cleaned.startswith("```json"):
            cleaned = cleaned[7:-3].strip()
        elif cleaned.startswith("```"):
            cleaned = cleaned[3:-3].strip()

        try:
            questions = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse extracted questions: {str(e)}")
            logger.error(f"Response text: {response_text[:500]}")
            raise InvalidError("No usable questions could be extracted from the file", error="import_empty")

        if not isinstance(questions, list):
            raise InvalidError("No usable questions could be extracted from the file", error="import_empty")

        questions = [q for q in questions if isinstance(q, dict)]
        if len(questions) > settings.MAX_IMPORT_QUESTIONS:
            logger.warning(f"Gemini returned {len(questions)} questions, keeping {settings.MAX_IMPORT_QUESTIONS}")
            questions = questions[:settings.MAX_IMPORT_QUESTIONS]

        return questions


# Global instance
gemini_service = GeminiService()
