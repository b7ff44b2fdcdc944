"""
Generative-AI Assistant for Finance Tracker

DESIGN DECISION: The assistant is an opaque text-completion collaborator.
Every operation goes through `complete(prompt, options)` and comes back
as a Completion carrying text and (for grounded searches) its sources.

BOUNDARIES:
- The aggregation engine never calls the assistant. Report data reaches
  a prompt only through `analyze_finances`, which embeds it verbatim.
- A parsed receipt is a SUGGESTION: it is shown in the entry form and
  only saved when the user submits it.
- Failures raise AssistantError after a bounded number of retries; the
  flows turn that into a generic message for the user.

Models:
- flash: receipt parsing, analysis, grounded search
- pro:   long multi-step questions
- chat:  low-latency chat assistant
"""

import json
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field, field_validator
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import GeminiSettings, get_settings
from finance_tracker.models.records import parse_amount


logger = structlog.get_logger(__name__)


class AssistantError(Exception):
    """The generative-AI service could not produce an answer."""
    pass


class GroundingSource(BaseModel):
    title: str = ""
    uri: str


class Completion(BaseModel):
    text: str
    sources: list[GroundingSource] = Field(default_factory=list)
    model_name: Optional[str] = None


class CompletionOptions(BaseModel):
    model: str = Field(
        default="flash",
        pattern="^(flash|pro|chat)$",
        description="Which configured model answers"
    )
    grounded: bool = Field(
        default=False,
        description="Let the model search the web and return its sources"
    )
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_output_tokens: Optional[int] = Field(default=None, ge=1)


class ChatMessage(BaseModel):
    sender: str = Field(..., pattern="^(user|bot)$")
    text: str
    sources: list[GroundingSource] = Field(default_factory=list)


class ReceiptExtraction(BaseModel):
    """What the model read off a receipt. Every field may be missing."""

    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    entry_date: Optional[date] = None
    suggested_category: Optional[str] = None

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Optional[Decimal]:
        if v is None or v == "":
            return None
        return parse_amount(v)

    @field_validator('entry_date', 'description', 'suggested_category', mode='before')
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block, if any."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def extract_json_object(text: str) -> dict:
    """
    First {...} object in a model answer.

    Raises:
        AssistantError: If the answer holds no parseable object
    """
    text = strip_code_fences(text)
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise AssistantError("The answer did not contain a JSON object")
    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise AssistantError(f"The answer held malformed JSON: {e}")


def extract_sources(response: Any) -> list[GroundingSource]:
    """Web sources behind a grounded answer, de-duplicated by URI."""
    seen = set()
    sources = []
    for candidate in getattr(response, "candidates", None) or []:
        metadata = getattr(candidate, "grounding_metadata", None)
        for chunk in getattr(metadata, "grounding_chunks", None) or []:
            web = getattr(chunk, "web", None)
            uri = getattr(web, "uri", "") if web is not None else ""
            if not uri or uri in seen:
                continue
            seen.add(uri)
            sources.append(GroundingSource(title=getattr(web, "title", "") or uri, uri=uri))
    return sources


class GenerativeAIService:
    """Gemini-backed implementation of the assistant."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model_names = {
            "flash": self._settings.flash_model,
            "pro": self._settings.pro_model,
            "chat": self._settings.chat_model,
        }

    def model_name(self, alias: str) -> str:
        return self._model_names[alias]

    def _build_model(self, options: CompletionOptions) -> "genai.GenerativeModel":
        generation_config = {
            "temperature": (
                options.temperature
                if options.temperature is not None
                else self._settings.temperature
            ),
            "max_output_tokens": options.max_output_tokens or self._settings.max_tokens,
        }
        kwargs = {}
        if options.grounded:
            kwargs["tools"] = "google_search_retrieval"
        return genai.GenerativeModel(
            model_name=self.model_name(options.model),
            generation_config=generation_config,
            **kwargs,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, model: "genai.GenerativeModel", contents: Any) -> Any:
        return await model.generate_content_async(contents)

    async def complete(
        self,
        prompt: Any,
        options: Optional[CompletionOptions] = None,
    ) -> Completion:
        """
        Send `prompt` (text, or a list of parts) and return the answer.

        Raises:
            AssistantError: If the model fails or returns no text
        """
        options = options or CompletionOptions()
        model = self._build_model(options)
        try:
            response = await self._generate(model, prompt)
            text = response.text
        except Exception as e:
            logger.error("assistant_request_failed", model=options.model, error=str(e))
            raise AssistantError(f"The assistant could not answer: {e}") from e

        if not text or not text.strip():
            raise AssistantError("The assistant returned an empty answer")

        return Completion(
            text=text.strip(),
            sources=extract_sources(response) if options.grounded else [],
            model_name=self.model_name(options.model),
        )

    async def parse_receipt(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: Iterable[str] = (),
    ) -> ReceiptExtraction:
        """Read description, amount, date and a category off a receipt photo."""
        categories = list(categories)
        allowed = ", ".join(categories) if categories else "any short category name"
        prompt = f"""You are reading a purchase receipt for a personal finance app.

Return ONLY a JSON object with these keys:
- "descricao": short description of the purchase (store or item)
- "valor": the total paid, as a number
- "data": the purchase date as YYYY-MM-DD, or null if not visible
- "categoria_sugerida": one of: {allowed}

If a value is not visible on the receipt, use null. Do not guess amounts."""

        completion = await self.complete(
            [{"mime_type": mime_type, "data": image_bytes}, prompt],
            CompletionOptions(model="flash", temperature=0.1),
        )
        data = extract_json_object(completion.text)

        suggested = data.get("categoria_sugerida")
        if suggested and categories:
            matches = [c for c in categories if c.strip().casefold() == str(suggested).strip().casefold()]
            suggested = matches[0] if matches else None

        try:
            return ReceiptExtraction(
                description=data.get("descricao"),
                amount=data.get("valor"),
                entry_date=data.get("data"),
                suggested_category=suggested,
            )
        except ValueError as e:
            raise AssistantError(f"The receipt could not be read: {e}") from e

    async def chat(
        self,
        history: Iterable[ChatMessage],
        message: str,
    ) -> Completion:
        """Answer `message` in the context of the previous turns."""
        turns = [
            f"{'User' if turn.sender == 'user' else 'Assistant'}: {turn.text}"
            for turn in history
        ]
        prompt = (
            "You are a friendly assistant inside a personal and business finance app. "
            "Answer briefly and practically.\n\n"
            + "\n".join(turns)
            + f"\nUser: {message}\nAssistant:"
        )
        return await self.complete(prompt, CompletionOptions(model="chat"))

    async def complex_query(self, question: str) -> Completion:
        """Long, multi-step question for the pro model."""
        return await self.complete(question, CompletionOptions(model="pro"))

    async def analyze_finances(
        self,
        report: dict,
        question: Optional[str] = None,
    ) -> Completion:
        """Insights on a report payload built by the aggregation engine."""
        prompt = (
            "Analyze the following financial data and provide insights, "
            "highlighting risks, spending patterns and concrete next steps.\n\n"
            f"{json.dumps(report, ensure_ascii=False, default=str, indent=2)}"
        )
        if question:
            prompt += f"\n\nThe user specifically asks: {question}"
        return await self.complete(prompt, CompletionOptions(model="flash"))

    async def grounded_search(self, query: str) -> Completion:
        """Web-grounded answer with de-duplicated sources."""
        return await self.complete(query, CompletionOptions(model="flash", grounded=True))
