"""
External integration tests: Gemini suggestions and Resend email.

Tests:
1-4. /api/ai/quote-styles (mocked Gemini)
5-8. send_email over HTTP (mocked urlopen)
9.   Email templates
"""

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from calcost import models, notifications
from calcost.config import settings
from calcost.routers import ai_suggest


STYLE_REQUEST = {
    "client_name": "Colegio San Andrés",
    "project_name": "Uniformes 2026",
    "quote_details": "120 poleras, 120 buzos",
}


@pytest.fixture(autouse=True)
def clear_prompt_cache():
    ai_suggest._prompt_cache.clear()
    yield
    ai_suggest._prompt_cache.clear()


def _urlopen_returning(payload: dict):
    response = MagicMock()
    response.read.return_value = json.dumps(payload).encode()
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


# --- Gemini ---

def test_quote_styles(client, auth_headers):
    """1. Suggestions come back as a list of strings."""
    with patch("calcost.routers.ai_suggest.call_gemini", return_value={"suggestions": ["Usar azul marino", "Logo arriba"]}):
        response = client.post("/api/ai/quote-styles", json=STYLE_REQUEST, headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"suggestions": ["Usar azul marino", "Logo arriba"]}


def test_quote_styles_without_key(client, auth_headers):
    """2. Missing GEMINI_API_KEY is a 500."""
    response = client.post("/api/ai/quote-styles", json=STYLE_REQUEST, headers=auth_headers)
    assert response.status_code == 500


def test_gemini_http_error_is_502(client, auth_headers, monkeypatch):
    """3. Upstream errors surface as 502."""
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    error = urllib.error.HTTPError("url", 429, "Too Many Requests", {}, io.BytesIO(b"quota"))
    with patch("urllib.request.urlopen", side_effect=error):
        response = client.post("/api/ai/quote-styles", json=STYLE_REQUEST, headers=auth_headers)
    assert response.status_code == 502


def test_gemini_answers_are_cached(monkeypatch):
    """4. The same prompt calls Gemini once."""
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    answer = {"candidates": [{"content": {"parts": [{"text": json.dumps({"suggestions": ["A"]})}]}}]}
    with patch("urllib.request.urlopen", return_value=_urlopen_returning(answer)) as urlopen:
        assert ai_suggest.call_gemini("prompt") == {"suggestions": ["A"]}
        assert ai_suggest.call_gemini("prompt") == {"suggestions": ["A"]}
    assert urlopen.call_count == 1


# --- Resend ---

def test_send_email_skipped_without_key():
    """5. No API key: nothing is sent."""
    with patch("urllib.request.urlopen") as urlopen:
        assert notifications.send_email(["a@b.bo"], "Hola", "<p>x</p>") is False
    urlopen.assert_not_called()


def test_send_email_posts_to_resend(monkeypatch):
    """6. The request carries the bearer key and the message."""
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    with patch("urllib.request.urlopen", return_value=_urlopen_returning({"id": "msg_1"})) as urlopen:
        assert notifications.send_email(["a@b.bo"], "Hola", "<p>x</p>", reply_to="taller@b.bo") is True

    request = urlopen.call_args[0][0]
    assert request.full_url == notifications.RESEND_URL
    assert request.get_header("Authorization") == "Bearer re_test"
    body = json.loads(request.data)
    assert body["to"] == ["a@b.bo"]
    assert body["reply_to"] == "taller@b.bo"


def test_send_email_http_error(monkeypatch):
    """7. Resend rejections are logged and reported as False."""
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    error = urllib.error.HTTPError("url", 422, "Unprocessable", {}, io.BytesIO(b"bad from"))
    with patch("urllib.request.urlopen", side_effect=error):
        assert notifications.send_email(["a@b.bo"], "Hola", "<p>x</p>") is False


def test_send_email_network_error(monkeypatch):
    """8. Network failures are reported as False."""
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("down")):
        assert notifications.send_email(["a@b.bo"], "Hola", "<p>x</p>") is False


def test_customer_email_escapes_input():
    """9. Customer-supplied text is HTML-escaped."""
    order = models.PublicOrder(
        id="0123456789abcdef",
        customer_name="<script>x</script>",
        customer_email="a@b.bo",
        customer_phone="1",
        college="Colegio",
        items=[{"product_name": "Polera", "quantity": 2, "price": 10, "size": "XL"}],
        total_amount=20,
        payment_proof_url="https://x/y.jpg",
    )
    message = notifications.customer_confirmation_email(order, models.User(name="Taller"))
    assert message["subject"] == "Confirmación de Pedido #01234567 - Colegio"
    assert "<script>" not in message["html"]
    assert "Bs 20.00" in message["html"]
