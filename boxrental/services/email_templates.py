"""
HTML email templates for rental notifications.

Every value that comes from a customer, driver or admin form goes through
escape_html() before it is interpolated. Templates never build markup from
raw user input.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union


CONTACT_EMAIL = "contacto@arriendocajas.cl"
WHATSAPP_NUMBER = "+56 9 8729 0995"
WHATSAPP_URL = "https://wa.me/56987290995"
GOOGLE_REVIEW_URL = "https://g.page/r/arriendocajas/review"

_MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

Number = Union[int, float, Decimal]


def escape_html(value) -> str:
    """Pure string replacement escaping; safe for element content and quoted attributes."""
    if value is None:
        return ""
    return (
        str(value)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def format_clp(amount: Optional[Number]) -> str:
    """Chilean peso format: 15000 -> '$15.000'"""
    value = int(round(float(amount or 0)))
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,}".replace(",", ".")


def format_date_long(value: Optional[date]) -> str:
    if not value:
        return "Por confirmar"
    return f"{value.day} de {_MONTHS_ES[value.month - 1]} de {value.year}"


def format_date_short(value: Optional[date]) -> str:
    if not value:
        return "-"
    return value.strftime("%d-%m-%Y")


@dataclass
class AdditionalProduct:
    name: str
    quantity: int = 1
    price: Number = 0

    @property
    def subtotal(self) -> float:
        return float(self.quantity or 0) * float(self.price or 0)


@dataclass
class RentalEmailData:
    customer_name: str
    customer_email: str
    tracking_code: str
    tracking_token: str
    tracking_url: str
    box_quantity: int
    delivery_date: Optional[date] = None
    pickup_date: Optional[date] = None
    delivery_address: Optional[str] = None
    pickup_address: Optional[str] = None
    total_amount: Number = 0
    guarantee_amount: Number = 0
    paid_amount: Number = 0
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    additional_products: List[AdditionalProduct] = field(default_factory=list)

    @property
    def additional_total(self) -> float:
        return sum(p.subtotal for p in self.additional_products)

    @property
    def rental_subtotal(self) -> float:
        return float(self.total_amount or 0) - float(self.guarantee_amount or 0) - self.additional_total


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _layout(title: str, gradient: str, heading: str, subheading: str, body: str, footer_note: str = "") -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{title}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: {gradient}; padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
    <h1 style="color: white; margin: 0; font-size: 28px;">{heading}</h1>
    <p style="color: white; margin: 10px 0 0 0; font-size: 16px;">{subheading}</p>
  </div>
  <div style="background: #f8f9fa; padding: 30px; border-radius: 0 0 10px 10px;">
{body}
    <p style="margin-top: 30px;">
      Si tienes alguna consulta, no dudes en contactarnos:<br>
      <strong>Email:</strong> {CONTACT_EMAIL}<br>
      <strong>WhatsApp:</strong> <a href="{WHATSAPP_URL}" style="color: #25D366; text-decoration: none;">{WHATSAPP_NUMBER}</a>
    </p>
    <hr style="border: none; border-top: 1px solid #ddd; margin: 30px 0;">
    <p style="text-align: center; color: #666; font-size: 12px;">
      &copy; Arriendo Cajas. Todos los derechos reservados.<br>
      {footer_note or "Este email fue enviado automáticamente, por favor no responder."}
    </p>
  </div>
</body>
</html>
"""


def _tracking_button(data: RentalEmailData, label: str = "Seguir mi Arriendo") -> str:
    return f"""    <div style="text-align: center; margin: 30px 0;">
      <a href="{escape_html(data.tracking_url)}" style="background: #C8201D; color: white; padding: 15px 30px; text-decoration: none; border-radius: 5px; font-weight: bold; display: inline-block;">{label}</a>
    </div>
"""


def _details_box(data: RentalEmailData, title: str, color: str = "#2E5CA6", extra_rows: str = "") -> str:
    return f"""    <div style="background: white; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid {color};">
      <h3 style="margin-top: 0; color: {color};">{title}</h3>
      <ul style="list-style: none; padding: 0;">
        <li style="margin: 8px 0;"><strong>Código:</strong> {escape_html(data.tracking_code)}</li>
        <li style="margin: 8px 0;"><strong>Cantidad:</strong> {data.box_quantity} cajas</li>
        <li style="margin: 8px 0;"><strong>Fecha de entrega:</strong> {format_date_short(data.delivery_date)}</li>
        <li style="margin: 8px 0;"><strong>Fecha de retiro:</strong> {format_date_short(data.pickup_date)}</li>
        <li style="margin: 8px 0;"><strong>Dirección:</strong> {escape_html(data.delivery_address)}</li>
{extra_rows}      </ul>
    </div>
"""


def _price_breakdown(data: RentalEmailData) -> str:
    product_rows = "".join(
        f"""        <div style="margin: 8px 0; color: #666;">{p.quantity}x {escape_html(p.name)}: {format_clp(p.subtotal)}</div>
"""
        for p in data.additional_products
    )
    return f"""    <div style="background: white; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #4CAF50;">
      <h3 style="margin-top: 0; color: #4CAF50;">Desglose de Precios</h3>
      <div style="margin: 8px 0;"><strong>Arriendo {data.box_quantity} cajas:</strong> {format_clp(data.rental_subtotal)}</div>
{product_rows}      <div style="margin: 8px 0; color: #856404;"><strong>Garantía:</strong> <small>(se devuelve al entregar las cajas)</small> {format_clp(data.guarantee_amount)}</div>
      <div style="font-size: 18px; font-weight: bold; color: #2E5CA6;">TOTAL A PAGAR: {format_clp(data.total_amount)}</div>
    </div>
"""


def pending_email(data: RentalEmailData) -> RenderedEmail:
    name = escape_html(data.customer_name)
    code = escape_html(data.tracking_code)
    body = f"""    <h2 style="color: #2E5CA6; margin-top: 0;">Hola {name},</h2>
    <p>Hemos recibido tu solicitud de arriendo. Se encuentra en estado <strong>PENDIENTE</strong>.
    <span style="background: #fff3cd; padding: 2px 6px; border-radius: 3px; color: #856404;">Solo al pagar se confirma el arriendo</span> y puedes tener tus cajas aseguradas.</p>
    <div style="background: #4CAF50; padding: 25px; border-radius: 10px; margin: 20px 0; text-align: center;">
      <h2 style="color: white; margin: 0; font-size: 24px;">PRECIO TOTAL</h2>
      <div style="color: white; font-size: 36px; font-weight: bold; margin: 10px 0;">{format_clp(data.total_amount)}</div>
    </div>
{_price_breakdown(data)}{_details_box(data, "Detalles del Arriendo")}
    <div style="background: #f0f8ff; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #0066cc;">
      <h3 style="margin-top: 0; color: #0066cc;">Formas de Pago</h3>
      <p>Transferencia bancaria o pago con tarjeta (3% de recargo). Escríbenos a <strong>{CONTACT_EMAIL}</strong> para coordinar.</p>
    </div>
{_tracking_button(data)}
    <p style="font-size: 14px; color: #1565c0;"><strong>Consejo:</strong> Guarda este email y el código {code} para hacer seguimiento de tu arriendo.</p>
"""
    return RenderedEmail(
        subject=f"📋 Cotización Recibida - Código {data.tracking_code}",
        html=_layout("Cotización Recibida", "linear-gradient(135deg, #2E5CA6 0%, #C8201D 100%)",
                     "Cotización Recibida", f"Tu código de seguimiento: <strong>{code}</strong>", body),
        text=(
            f"Hola {data.customer_name}, recibimos tu solicitud de arriendo ({data.tracking_code}) "
            f"por {data.box_quantity} cajas. Total: {format_clp(data.total_amount)}. "
            f"Seguimiento: {data.tracking_url}"
        ),
    )


def pending_reminder_email(data: RentalEmailData) -> RenderedEmail:
    name = escape_html(data.customer_name)
    code = escape_html(data.tracking_code)
    pickup_address = escape_html(data.pickup_address or data.delivery_address)
    body = f"""    <h2 style="color: #2E5CA6; margin-top: 0;">Hola {name},</h2>
    <p>Te recordamos que el retiro de tus <strong>{data.box_quantity} cajas</strong> está programado para el
    <strong>{format_date_long(data.pickup_date)}</strong>.</p>
    <div style="background: #fff3cd; padding: 20px; border-radius: 8px; margin: 20px 0;">
      <h3 style="color: #856404; margin-top: 0;">Detalles del Retiro</h3>
      <p><strong>Fecha:</strong> {format_date_short(data.pickup_date)}</p>
      <p><strong>Cantidad:</strong> {data.box_quantity} cajas</p>
      <p><strong>Dirección de retiro:</strong> {pickup_address}</p>
    </div>
    <p><strong>Importante:</strong> ten las cajas vacías y listas para el retiro. Si necesitas extender el arriendo, contáctanos.</p>
{_tracking_button(data)}"""
    return RenderedEmail(
        subject=f"⏰ Recordatorio de Retiro - Código {data.tracking_code}",
        html=_layout("Recordatorio de Retiro", "linear-gradient(135deg, #FF9800 0%, #C8201D 100%)",
                     "Recordatorio de Retiro", f"Código: <strong>{code}</strong>", body),
        text=(
            f"Hola {data.customer_name}, el retiro de tus {data.box_quantity} cajas está programado para el "
            f"{format_date_long(data.pickup_date)} en {data.pickup_address or data.delivery_address or ''}. "
            f"Seguimiento: {data.tracking_url}"
        ),
    )


def paid_email(data: RentalEmailData) -> RenderedEmail:
    name = escape_html(data.customer_name)
    code = escape_html(data.tracking_code)
    body = f"""    <h2 style="color: #2E5CA6; margin-top: 0;">Hola {name},</h2>
    <p>¡Excelentes noticias! Tu pago ha sido confirmado y tu arriendo está <strong>ASEGURADO</strong>.
    Tus cajas están reservadas y listas para la entrega programada.</p>
{_details_box(data, "Arriendo Confirmado", "#4CAF50")}{_tracking_button(data)}
    <p style="font-size: 14px; color: #2e7d32;">Pronto nos contactaremos para coordinar los detalles de la entrega.</p>
"""
    return RenderedEmail(
        subject=f"✅ Pago Confirmado - Arriendo {data.tracking_code}",
        html=_layout("Pago Confirmado", "linear-gradient(135deg, #4CAF50 0%, #2E7D32 100%)",
                     "¡Pago Confirmado!", f"Código: <strong>{code}</strong>", body),
        text=(
            f"Hola {data.customer_name}, tu pago fue confirmado. {data.box_quantity} cajas, entrega "
            f"{format_date_long(data.delivery_date)}. Seguimiento: {data.tracking_url}"
        ),
    )


def on_route_email(data: RentalEmailData) -> RenderedEmail:
    name = escape_html(data.customer_name)
    code = escape_html(data.tracking_code)
    driver_rows = ""
    if data.driver_name:
        driver_rows += f'        <li style="margin: 8px 0;"><strong>Repartidor:</strong> {escape_html(data.driver_name)}</li>\n'
    if data.driver_phone:
        driver_rows += f'        <li style="margin: 8px 0;"><strong>Teléfono:</strong> {escape_html(data.driver_phone)}</li>\n'
    body = f"""    <h2 style="color: #2E5CA6; margin-top: 0;">Hola {name},</h2>
    <p>¡Buenas noticias! Nuestro repartidor ya está <strong>EN CAMINO</strong> hacia tu dirección con las
    <strong>{data.box_quantity} cajas</strong> que solicitaste.</p>
{_details_box(data, "Entrega en Curso", "#3F51B5", driver_rows)}
    <p style="font-size: 14px;">El repartidor te contactará al llegar a tu dirección. Tiempo estimado: 30-45 minutos.</p>
{_tracking_button(data)}"""
    return RenderedEmail(
        subject=f"🚚 ¡Vamos en camino! - Código {data.tracking_code}",
        html=_layout("¡Vamos en Camino!", "linear-gradient(135deg, #3F51B5 0%, #2E5CA6 100%)",
                     "¡Vamos en Camino!", f"Código: <strong>{code}</strong>", body,
                     "Tu repartidor llega pronto con tus cajas."),
        text=(
            f"Hola {data.customer_name}, tus {data.box_quantity} cajas van en camino a "
            f"{data.delivery_address or ''}. Seguimiento: {data.tracking_url}"
        ),
    )


def delivered_email(data: RentalEmailData) -> RenderedEmail:
    name = escape_html(data.customer_name)
    code = escape_html(data.tracking_code)
    body = f"""    <h2 style="color: #2E5CA6; margin-top: 0;">Hola {name},</h2>
    <p>¡Perfecto! Tus {data.box_quantity} cajas han sido <strong>ENTREGADAS</strong> exitosamente en {escape_html(data.delivery_address)}.</p>
{_details_box(data, "Entrega Completada", "#28a745")}
    <div style="background: #e8f5e8; padding: 15px; margin: 15px 0; border-left: 4px solid #28a745;">
      <h3 style="margin-top: 0;">Consejos para el mejor uso</h3>
      <ul>
        <li>Mantén las cajas en un lugar seco y ventilado</li>
        <li>No superes el peso máximo recomendado por caja</li>
        <li>Evita apilar más de 3 cajas para mayor estabilidad</li>
      </ul>
    </div>
    <p><strong>Próximo paso:</strong> ten las cajas listas para el retiro el {format_date_long(data.pickup_date)}.</p>
{_tracking_button(data)}"""
    return RenderedEmail(
        subject=f"✅ Cajas Entregadas - Código {data.tracking_code}",
        html=_layout("Cajas Entregadas", "linear-gradient(135deg, #28a745 0%, #2E7D32 100%)",
                     "¡Entrega Completada!", f"Código: <strong>{code}</strong>", body),
        text=(
            f"Hola {data.customer_name}, tus {data.box_quantity} cajas fueron entregadas en "
            f"{data.delivery_address or ''}. Retiro: {format_date_long(data.pickup_date)}. "
            f"Seguimiento: {data.tracking_url}"
        ),
    )


def picked_up_email(data: RentalEmailData) -> RenderedEmail:
    name = escape_html(data.customer_name)
    code = escape_html(data.tracking_code)
    body = f"""    <h2 style="color: #2E5CA6; margin-top: 0;">Hola {name},</h2>
    <p>Las {data.box_quantity} cajas han sido <strong>RETIRADAS</strong> exitosamente. El arriendo está casi finalizado.</p>
{_details_box(data, "Retiro Completado", "#FF9800")}
    <p style="font-size: 14px; color: #1565c0;"><strong>Próximo paso:</strong> pronto recibirás la confirmación de devolución de la garantía ({format_clp(data.guarantee_amount)}).</p>
{_tracking_button(data)}"""
    return RenderedEmail(
        subject=f"📦 Cajas Retiradas - Código {data.tracking_code}",
        html=_layout("Cajas Retiradas", "linear-gradient(135deg, #FF9800 0%, #F57C00 100%)",
                     "Cajas Retiradas", f"Código: <strong>{code}</strong>", body),
        text=(
            f"Hola {data.customer_name}, retiramos tus {data.box_quantity} cajas. "
            f"Pronto devolveremos la garantía. Seguimiento: {data.tracking_url}"
        ),
    )


def completed_email(data: RentalEmailData) -> RenderedEmail:
    name = escape_html(data.customer_name)
    code = escape_html(data.tracking_code)
    body = f"""    <h2 style="color: #2E5CA6; margin-top: 0;">¡Gracias {name}!</h2>
    <p>Tu arriendo ha sido <strong>FINALIZADO</strong> exitosamente. La garantía será devuelta según el método de pago original.</p>
    <div style="background: white; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #4CAF50;">
      <h3 style="margin-top: 0; color: #4CAF50;">Arriendo Completado</h3>
      <ul style="list-style: none; padding: 0;">
        <li style="margin: 8px 0;"><strong>Cantidad:</strong> {data.box_quantity} cajas</li>
        <li style="margin: 8px 0;"><strong>Estado:</strong> FINALIZADO</li>
        <li style="margin: 8px 0;"><strong>Garantía:</strong> En proceso de devolución</li>
      </ul>
    </div>
    <div style="background: #e8f5e8; padding: 20px; border-radius: 8px; margin: 30px 0; text-align: center;">
      <h3 style="margin-top: 0; color: #2e7d32;">¿Quedaste satisfecho con nuestro servicio?</h3>
      <a href="{GOOGLE_REVIEW_URL}" target="_blank" style="background: #4CAF50; color: white; padding: 15px 30px; text-decoration: none; border-radius: 5px; font-weight: bold; display: inline-block;">Dejar Reseña en Google</a>
    </div>
{_tracking_button(data, "Ver Resumen Final")}"""
    return RenderedEmail(
        subject=f"🎉 Arriendo Finalizado - Código {data.tracking_code}",
        html=_layout("Arriendo Finalizado", "linear-gradient(135deg, #4CAF50 0%, #8BC34A 100%)",
                     "¡Arriendo Finalizado!", f"Código: <strong>{code}</strong>", body,
                     "Gracias por confiar en nosotros."),
        text=(
            f"¡Gracias {data.customer_name}! Tu arriendo {data.tracking_code} ha finalizado. "
            f"La garantía se devolverá en 24-48 horas hábiles."
        ),
    )


TEMPLATES: Dict[str, Callable[[RentalEmailData], RenderedEmail]] = {
    "pending": pending_email,
    "pending_reminder": pending_reminder_email,
    "paid": paid_email,
    "on_route": on_route_email,
    "delivered": delivered_email,
    "picked_up": picked_up_email,
    "completed": completed_email,
}


def has_template(email_type: str) -> bool:
    return email_type in TEMPLATES


def render_email(email_type: str, data: RentalEmailData) -> Optional[RenderedEmail]:
    template = TEMPLATES.get(email_type)
    if template is None:
        return None
    return template(data)


def sample_email_data() -> RentalEmailData:
    """Fixed data used by the admin preview"""
    return RentalEmailData(
        customer_name="Juan Pérez",
        customer_email="juan.perez@example.com",
        tracking_code="0939AB12C",
        tracking_token="XY7Z9",
        tracking_url="http://localhost:8000/track/0939AB12C/XY7Z9",
        box_quantity=10,
        delivery_date=date(2025, 1, 10),
        pickup_date=date(2025, 1, 17),
        delivery_address="Av. Providencia 1234, Providencia",
        pickup_address="Av. Providencia 1234, Providencia",
        total_amount=Decimal("125000"),
        guarantee_amount=Decimal("20000"),
        driver_name="Carlos Soto",
        driver_phone="+56 9 1111 2222",
        additional_products=[AdditionalProduct(name="Carrito plegable", quantity=1, price=15000)],
    )
