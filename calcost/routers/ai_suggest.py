"""
AI styling suggestions for quote documents: powered by Gemini.

The workshop sends the quote's client, project and a plain-text summary;
Gemini answers with short, actionable layout and styling ideas.
"""

import json
import logging
import urllib.error
import urllib.request
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from .. import models
from ..auth import get_current_user
from ..config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

STYLE_CONTEXT = """
Eres un consultor de diseño experto especializado en la estética de documentos de cotización.
Basado en los detalles de la cotización, sugiere arreglos de diseño y opciones de estilo para mejorar
el atractivo visual y la profesionalidad de la cotización: fuentes, paletas de colores, estructura
del documento y cualquier otro elemento relevante. Cada sugerencia debe ser concisa y accionable,
y adaptarse al proyecto y al cliente.

Responde SOLO con JSON válido, sin explicación ni markdown:
{"suggestions": ["..."]}
"""

# Simple in-memory prompt cache, max 50 entries
_prompt_cache: dict = {}
_CACHE_MAX = 50


class QuoteStyleRequest(BaseModel):
    client_name: str = Field(..., min_length=1)
    project_name: str = Field(..., min_length=1)
    quote_details: str = Field(..., min_length=1)


class QuoteStyleResponse(BaseModel):
    suggestions: List[str]


def call_gemini(prompt: str) -> dict:
    """Call Gemini and return the parsed JSON answer."""
    if prompt in _prompt_cache:
        return _prompt_cache[prompt]

    api_key = settings.GEMINI_API_KEY
    if not api_key:
        raise HTTPException(status_code=500, detail="GEMINI_API_KEY not configured")

    url = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        f"{settings.GEMINI_MODEL}:generateContent?key={api_key}"
    )
    payload = json.dumps({
        "contents": [{"parts": [{"text": STYLE_CONTEXT + "\n\n" + prompt}]}],
        "generationConfig": {
            "temperature": 0.7,
            "responseMimeType": "application/json",
        },
    }).encode("utf-8")

    req = urllib.request.Request(
        url,
        data=payload,
        headers={"Content-Type": "application/json"},
        method="POST",
    )

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            result = json.loads(response.read())
            text = result["candidates"][0]["content"]["parts"][0]["text"]
            parsed = json.loads(text)
    except urllib.error.HTTPError as e:
        error_body = e.read().decode(errors="replace")
        logger.error("Gemini API error %s: %s", e.code, error_body)
        raise HTTPException(status_code=502, detail=f"Gemini API error: {error_body}")
    except Exception as e:
        logger.error("Gemini call failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Gemini call failed: {str(e)}")

    if len(_prompt_cache) >= _CACHE_MAX:
        _prompt_cache.pop(next(iter(_prompt_cache)))
    _prompt_cache[prompt] = parsed
    return parsed


@router.post("/quote-styles", response_model=QuoteStyleResponse)
def suggest_quote_styles(
    request: QuoteStyleRequest,
    current_user: models.User = Depends(get_current_user),
):
    prompt = (
        f"Nombre del Cliente: {request.client_name}\n"
        f"Nombre del Proyecto: {request.project_name}\n"
        f"Detalles de la Cotización: {request.quote_details}"
    )
    answer = call_gemini(prompt)

    suggestions = answer.get("suggestions") if isinstance(answer, dict) else None
    if not isinstance(suggestions, list):
        raise HTTPException(status_code=502, detail="Gemini returned no suggestions")
    return QuoteStyleResponse(suggestions=[str(s) for s in suggestions if s])
