"""Correos transaccionales vía la API REST de Resend."""
import logging
from html import escape
from typing import Any, Dict, Optional

import requests

from ..core.config import settings
from ..utils.money import format_mxn

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class EmailService:
    def __init__(self, api_key: str, from_email: str, timeout: float = 15):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _send(self, to: str, subject: str, html: str) -> Optional[dict]:
        if not self.enabled:
            logger.warning("RESEND_API_KEY no configurada; se omite correo '%s' a %s", subject, to)
            return None
        r = requests.post(
            RESEND_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"from": self.from_email, "to": [to], "subject": subject, "html": html},
            timeout=self.timeout,
        )
        r.raise_for_status()
        logger.info("Correo '%s' enviado a %s", subject, to)
        return r.json()

    def send_order_confirmation(self, order: Dict[str, Any]) -> Optional[dict]:
        html = _layout(
            f"¡Gracias por tu compra, {escape(order['customer_name'])}!",
            _items_table(order) + _address_block(order.get("shipping_address") or {}),
        )
        return self._send(
            order["customer_email"],
            f"Confirmación de pedido #{order['paypal_order_id']} - Aceves Joyería",
            html,
        )

    def send_shipping_notification(self, order: Dict[str, Any]) -> Optional[dict]:
        tracking = order.get("tracking_number")
        body = "<p>Tu pedido va en camino.</p>"
        if tracking:
            body += f"<p>Número de guía: <strong>{escape(tracking)}</strong></p>"
        html = _layout(
            f"{escape(order['customer_name'])}, tu pedido fue enviado",
            body + _items_table(order) + _address_block(order.get("shipping_address") or {}),
        )
        return self._send(
            order["customer_email"],
            f"Tu pedido #{order['paypal_order_id']} ha sido enviado - Aceves Joyería",
            html,
        )


def _layout(title: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h1 style="color: #111827;">{title}</h1>{body}'
        '<p style="color: #6b7280;">Aceves Joyería</p></div>'
    )


def _items_table(order: Dict[str, Any]) -> str:
    rows = []
    for it in order.get("items") or []:
        name = escape(str(it.get("product_name") or it.get("name") or ""))
        size = it.get("selected_size") or it.get("selectedSize")
        if size:
            name += f' <span style="color: #6b7280;">(Talla: {escape(str(size))})</span>'
        qty = int(it.get("quantity") or 0)
        line = float(it.get("price") or 0) * qty
        rows.append(
            f"<tr><td>{qty}x {name}</td>"
            f'<td style="text-align: right;">${format_mxn(line)} MXN</td></tr>'
        )
    for label, key in (("Descuento (cupón)", "coupon_discount"), ("Descuento de usuario", "user_discount")):
        if order.get(key):
            rows.append(
                f'<tr><td style="color: #059669;">{label}</td>'
                f'<td style="text-align: right; color: #059669;">-${format_mxn(order[key])} MXN</td></tr>'
            )
    rows.append(
        f"<tr><td><strong>Total</strong></td>"
        f'<td style="text-align: right;"><strong>${format_mxn(order["total_amount"])} MXN</strong></td></tr>'
    )
    return '<table style="width: 100%; border-collapse: collapse;">' + "".join(rows) + "</table>"


def _address_block(addr: Dict[str, Any]) -> str:
    parts = [addr.get(k) for k in ("calle", "colonia", "ciudad", "cp", "pais")]
    text = ", ".join(escape(str(p)) for p in parts if p)
    return f"<p><strong>Dirección de envío:</strong> {text}</p>" if text else ""


def get_email_service() -> EmailService:
    return EmailService(settings.resend_api_key, settings.resend_from_email)
