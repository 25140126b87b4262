"""
Transactional email: order confirmations, workshop alerts, fitting links.

Sent through the Resend HTTP API. Email is best effort: when RESEND_API_KEY
is unset, or Resend rejects the request, the failure is logged and the
caller carries on.
"""

import json
import logging
import urllib.error
import urllib.request
from html import escape
from typing import List, Optional

from . import models
from .config import settings

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


def send_email(to: List[str], subject: str, html: str, from_address: str = None, reply_to: Optional[str] = None) -> bool:
    """POST one email to Resend. Returns True when Resend accepted it."""
    api_key = settings.RESEND_API_KEY
    if not api_key:
        logger.warning("RESEND_API_KEY not configured: skipping email '%s'", subject)
        return False

    body = {
        "from": from_address or settings.EMAIL_FROM,
        "to": to,
        "subject": subject,
        "html": html,
    }
    if reply_to:
        body["reply_to"] = reply_to

    req = urllib.request.Request(
        RESEND_URL,
        data=json.dumps(body).encode("utf-8"),
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        },
        method="POST",
    )

    try:
        with urllib.request.urlopen(req, timeout=15) as response:
            result = json.loads(response.read() or b"{}")
            logger.info("Email '%s' sent to %s (id=%s)", subject, ", ".join(to), result.get("id"))
            return True
    except urllib.error.HTTPError as e:
        logger.error("Resend rejected email '%s': %s %s", subject, e.code, e.read().decode(errors="replace"))
    except (urllib.error.URLError, TimeoutError, ValueError) as e:
        logger.error("Email '%s' failed: %s", subject, e)
    return False


def _money(amount) -> str:
    return f"Bs {float(amount):,.2f}"


def _order_number(order_id: str) -> str:
    return order_id[:8]


def _items_rows(items: list) -> str:
    rows = []
    for item in items:
        size = f" ({escape(item['size'])})" if item.get("size") else ""
        rows.append(
            "<tr>"
            f"<td style=\"padding: 8px; border-bottom: 1px solid #e5e7eb;\">{escape(item['product_name'])}{size}</td>"
            f"<td style=\"padding: 8px; border-bottom: 1px solid #e5e7eb; text-align: center;\">{item['quantity']}</td>"
            f"<td style=\"padding: 8px; border-bottom: 1px solid #e5e7eb; text-align: right;\">"
            f"{_money(item['price'] * item['quantity'])}</td>"
            "</tr>"
        )
    return "".join(rows)


def customer_confirmation_email(order: models.PublicOrder, workshop: models.User) -> dict:
    number = _order_number(order.id)
    workshop_name = escape(workshop.name or settings.APP_NAME)
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #1f2937;">
      <h1>¡Pedido Recibido!</h1>
      <p>Gracias por tu pedido, {escape(order.customer_name)}.</p>
      <p>Número de Pedido: <strong style="font-family: monospace;">#{number}</strong></p>
      <h2>Colegio</h2>
      <p>{escape(order.college)}</p>
      <h2>Detalle del Pedido</h2>
      <table style="width: 100%; border-collapse: collapse;">
        <tr><th align="left">Prenda</th><th>Cant.</th><th align="right">Subtotal</th></tr>
        {_items_rows(order.items or [])}
        <tr><td colspan="2"><strong>Total</strong></td>
            <td style="text-align: right;"><strong>{_money(order.total_amount)}</strong></td></tr>
      </table>
      <p>Tu comprobante de pago está siendo verificado. Te avisaremos cuando tu pedido pase a producción.</p>
      <p style="font-size: 12px; color: #9ca3af;">{workshop_name}</p>
    </div>
    """
    return {
        "subject": f"Confirmación de Pedido #{number} - {order.college}",
        "html": html,
    }


def workshop_notification_email(order: models.PublicOrder) -> dict:
    number = _order_number(order.id)
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #1f2937;">
      <h1>Nuevo Pedido</h1>
      <p><strong>Acción Requerida:</strong> valida el pago y contacta al cliente.</p>
      <h2>Información del Pedido</h2>
      <p>Pedido #{number} · Colegio: {escape(order.college)} · Total: {_money(order.total_amount)}</p>
      <p>Comprobante: <a href="{escape(order.payment_proof_url)}">ver comprobante</a></p>
      <h2>Datos del Cliente</h2>
      <p>{escape(order.customer_name)}<br>{escape(order.customer_email)}<br>{escape(order.customer_phone)}</p>
      <h2>Prendas Pedidas</h2>
      <table style="width: 100%; border-collapse: collapse;">
        {_items_rows(order.items or [])}
      </table>
    </div>
    """
    return {
        "subject": f"Nuevo Pedido en Línea #{number}",
        "html": html,
    }


def fitting_confirmation_email(person_name: str, project_name: str, sizes: dict, garment_names: dict, url: str) -> dict:
    """sizes: {garment_id: size}; garment_names: {garment_id: display name}."""
    size_rows = "".join(
        f"<li>{escape(garment_names.get(garment_id, garment_id))}: <strong>{escape(size)}</strong></li>"
        for garment_id, size in sizes.items()
    )
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h1>Hola {escape(person_name)},</h1>
      <p>Por favor, confirme sus tallas para el proyecto "{escape(project_name)}" haciendo clic en el enlace de abajo:</p>
      <div style="background-color: #f9f9f9; border: 1px solid #eee; padding: 16px; border-radius: 5px;">
        <ul>{size_rows}</ul>
      </div>
      <a href="{url}" style="background-color: #144b87; color: white; padding: 12px 20px; text-decoration: none;">
        Confirmar mis tallas
      </a>
      <p>Si el botón no funciona, copie y pegue este enlace en su navegador:</p>
      <p>{url}</p>
      <p>Este enlace es permanente hasta su primer uso.</p>
    </div>
    """
    return {
        "subject": f"Confirme sus tallas para el proyecto {project_name}",
        "html": html,
    }


def _sender(workshop: models.User) -> str:
    if workshop.email_sender_name:
        return f"{workshop.email_sender_name} <{settings.EMAIL_FROM}>"
    return settings.EMAIL_FROM


def notify_new_order(order: models.PublicOrder, workshop: models.User) -> dict:
    """
    Send the emails a new public order triggers, per the workshop's settings.

    Returns {"customer": bool, "workshop": bool}: whether each was sent.
    Never raises.
    """
    sent = {"customer": False, "workshop": False}
    try:
        if workshop.send_confirmation_to_customer:
            message = customer_confirmation_email(order, workshop)
            sent["customer"] = send_email(
                [order.customer_email],
                message["subject"],
                message["html"],
                from_address=_sender(workshop),
                reply_to=workshop.email_reply_to or workshop.email,
            )
        if workshop.notify_workshop_on_new_order:
            message = workshop_notification_email(order)
            sent["workshop"] = send_email(
                [workshop.email_reply_to or workshop.email],
                message["subject"],
                message["html"],
                from_address=settings.NOTIFICATIONS_FROM,
            )
    except Exception:
        logger.exception("Notification for order %s failed", order.id)
    return sent
