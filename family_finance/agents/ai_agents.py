"""
AI Agents for Family Finance

Two stateless helpers on top of Gemini:

1. FINANCIAL ANALYSIS AGENT:
   - CAN: Summarize recent transactions, suggest savings tips,
     point out unusual spending
   - CANNOT: Change any data
   - NEVER raises: any failure becomes a neutral "analysis
     unavailable" result so the dashboard keeps working

2. RECEIPT EXTRACTION AGENT:
   - CAN: Read title, total, date and a short item summary off a photo
   - CANNOT: Save anything. The result only prefills the form and the
     user reviews it before submitting
   - Failures raise `ReceiptExtractionError`, which is retryable and
     aborts only the capture flow

The LLM is a convenience, not a source of truth. Nothing it returns
is stored without going through the normal transaction form.
"""

import asyncio
import io
import json
from typing import Any, Optional

import google.generativeai as genai
from PIL import Image, ImageOps, UnidentifiedImageError
from pydantic import ValidationError as PydanticValidationError

from family_finance.audit import AuditLogger, get_logger
from family_finance.config import AppSettings, GeminiSettings, get_settings
from family_finance.errors import ReceiptExtractionError
from family_finance.models.audit import AuditEventBuilder
from family_finance.models.ledger import Transaction
from family_finance.models.reports import FinancialAnalysis, ReceiptData


logger = get_logger(__name__)

NOT_ENOUGH_DATA = FinancialAnalysis(
    summary="Não há transações suficientes para análise.",
    tips=["Adicione receitas e despesas para receber dicas."],
    anomalies=[],
)

ANALYSIS_UNAVAILABLE = FinancialAnalysis(
    summary="Não foi possível gerar a análise no momento.",
    tips=["Tente novamente mais tarde."],
    anomalies=[],
    is_fallback=True,
)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block, if any."""
    text = text.strip()
    if text.startswith("```"):
        text = text[3:]
        if text[:4].lower() == "json":
            text = text[4:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _response_text(response: Any) -> str:
    """`response.text`, or "" when the model produced no candidate."""
    try:
        return (response.text or "").strip()
    except ValueError:
        # Raised by the SDK when the answer was blocked or empty
        return ""


def _build_model(settings: GeminiSettings, model_name: str, json_output: bool):
    genai.configure(api_key=settings.api_key)
    generation_config = {
        "temperature": settings.temperature,
        "max_output_tokens": settings.max_tokens,
    }
    if json_output:
        generation_config["response_mime_type"] = "application/json"
    return genai.GenerativeModel(
        model_name=model_name,
        generation_config=generation_config,
    )


class FinancialAnalysisAgent:
    """
    Summary, tips and anomalies for the most recent transactions.
    """

    def __init__(
        self,
        model=None,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._record_limit = (app_settings or get_settings().app).analysis_record_limit
        self._model = model or _build_model(
            self._settings, self._settings.analysis_model_name, json_output=True,
        )
        self._audit = audit_logger

    def _log(self, event) -> None:
        if self._audit:
            self._audit.log(event)

    def _recent(self, transactions: list[Transaction]) -> list[dict]:
        recent = sorted(transactions, key=lambda t: t.date, reverse=True)
        return [
            {
                "title": t.title,
                "amount": float(t.amount),
                "type": t.type.value,
                "category": t.category,
                "date": t.date.isoformat(),
            }
            for t in recent[:self._record_limit]
        ]

    def _prompt(self, records: list[dict]) -> str:
        return f"""Atue como um consultor financeiro pessoal experiente.
Analise os seguintes dados financeiros (JSON) e forneça um resumo breve, 3 dicas práticas de economia e identifique se há algo fora do comum (anomalias).

Responda EXCLUSIVAMENTE com um objeto JSON neste formato:
{{"summary": "resumo em português", "tips": ["dica 1", "dica 2", "dica 3"], "anomalies": ["alerta"]}}

Dados: {json.dumps(records, ensure_ascii=False)}"""

    async def analyze(self, transactions: list[Transaction]) -> FinancialAnalysis:
        """
        Analyze recent transactions.

        Never raises. On any failure the neutral fallback is returned
        (`is_fallback=True`) and the error is logged.
        """
        if not transactions:
            return NOT_ENOUGH_DATA.model_copy(deep=True)

        records = self._recent(transactions)
        try:
            response = await asyncio.wait_for(
                self._model.generate_content_async(self._prompt(records)),
                timeout=self._settings.timeout_seconds,
            )
            text = strip_code_fences(_response_text(response))
            if not text:
                raise ValueError("Empty response from model")
            data = json.loads(text)
            analysis = FinancialAnalysis(
                summary=data["summary"],
                tips=list(data.get("tips") or []),
                anomalies=list(data.get("anomalies") or []),
            )
        except Exception as e:
            logger.warning("analysis_failed", error=str(e), record_count=len(records))
            self._log(AuditEventBuilder.analysis(False, len(records), str(e)))
            return ANALYSIS_UNAVAILABLE.model_copy(deep=True)

        self._log(AuditEventBuilder.analysis(True, len(records)))
        return analysis


class ReceiptExtractionAgent:
    """
    Reads a receipt photo into `ReceiptData`.

    The image is normalized before upload: EXIF rotation applied,
    converted to RGB, longest side bounded, re-encoded as JPEG.
    """

    def __init__(
        self,
        model=None,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._max_dimension = (app_settings or get_settings().app).receipt_max_dimension
        self._model = model or _build_model(
            self._settings, self._settings.receipt_model_name, json_output=False,
        )
        self._audit = audit_logger

    def _log(self, event) -> None:
        if self._audit:
            self._audit.log(event)

    def normalize_image(self, image_bytes: bytes) -> bytes:
        """
        Re-encode an uploaded image as a bounded RGB JPEG.

        Raises:
            ReceiptExtractionError: If the bytes are not a readable image
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                img = ImageOps.exif_transpose(img)
                img = img.convert("RGB")
                img.thumbnail((self._max_dimension, self._max_dimension))
                out = io.BytesIO()
                img.save(out, format="JPEG", quality=85)
                return out.getvalue()
        except (UnidentifiedImageError, OSError) as e:
            raise ReceiptExtractionError() from e

    def _prompt(self) -> str:
        return """Analise esta imagem de recibo/nota fiscal. Extraia os dados e retorne ESTRITAMENTE um JSON válido.

Estrutura do JSON desejado:
{
  "title": "string (Nome do estabelecimento)",
  "amount": number (Valor total numérico),
  "date": "string (YYYY-MM-DD) ou null se não encontrar",
  "observation": "string (Resumo dos itens)"
}

Não inclua markdown. Retorne apenas o texto do JSON cru."""

    async def extract(self, image_bytes: bytes) -> Optional[ReceiptData]:
        """
        Extract receipt fields from an image.

        Returns:
            The extracted data, or None if the model returned nothing usable

        Raises:
            ReceiptExtractionError: Unreadable image, model failure,
                                    or an answer that is not valid JSON
        """
        jpeg = self.normalize_image(image_bytes)

        try:
            response = await asyncio.wait_for(
                self._model.generate_content_async([
                    {"mime_type": "image/jpeg", "data": jpeg},
                    self._prompt(),
                ]),
                timeout=self._settings.timeout_seconds,
            )
        except Exception as e:
            logger.warning("receipt_model_failed", error=str(e))
            self._log(AuditEventBuilder.receipt(False, str(e)))
            raise ReceiptExtractionError() from e

        text = strip_code_fences(_response_text(response))
        if not text:
            self._log(AuditEventBuilder.receipt(False, "empty response"))
            return None

        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("Receipt answer is not a JSON object")
            receipt = ReceiptData(
                title=str(data.get("title") or "").strip(),
                amount=data.get("amount"),
                date=data.get("date") or None,
                observation=data.get("observation") or None,
            )
        except (ValueError, PydanticValidationError) as e:
            logger.warning("receipt_parse_failed", error=str(e))
            self._log(AuditEventBuilder.receipt(False, str(e)))
            raise ReceiptExtractionError() from e

        if receipt.is_empty:
            self._log(AuditEventBuilder.receipt(False, "no fields extracted"))
            return None

        self._log(AuditEventBuilder.receipt(True))
        return receipt
