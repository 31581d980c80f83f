from datetime import date

import pytest

from boxrental.services.email_templates import (
    TEMPLATES,
    AdditionalProduct,
    RentalEmailData,
    escape_html,
    format_clp,
    format_date_long,
    format_date_short,
    render_email,
    sample_email_data,
)


HOSTILE_NAME = "<script>alert('x')</script> & \"Hijos\""
HOSTILE_ADDRESS = "Calle <b>Falsa</b> 123 & Depto 'B'"


def _hostile_data() -> RentalEmailData:
    return RentalEmailData(
        customer_name=HOSTILE_NAME,
        customer_email="victim@example.com",
        tracking_code="0939AB12C",
        tracking_token="XY7Z9",
        tracking_url="https://arriendocajas.test/track/0939AB12C/XY7Z9?a=1&b=\"2\"",
        box_quantity=15,
        delivery_date=date(2025, 1, 10),
        pickup_date=date(2025, 1, 17),
        delivery_address=HOSTILE_ADDRESS,
        pickup_address=HOSTILE_ADDRESS,
        total_amount=150000,
        guarantee_amount=30000,
        driver_name="<img src=x onerror=alert(1)>",
        driver_phone="+56 9 <1234>",
        additional_products=[AdditionalProduct(name="Carrito <plegable>", quantity=1, price=15000)],
    )


def test_escape_html_replaces_all_five_characters():
    assert escape_html("&<>\"'") == "&amp;&lt;&gt;&quot;&#39;"
    assert escape_html(None) == ""
    assert escape_html(15) == "15"


def test_escape_html_escapes_ampersand_first():
    assert escape_html("&lt;") == "&amp;lt;"


@pytest.mark.parametrize("email_type", sorted(TEMPLATES))
def test_templates_escape_user_controlled_values(email_type):
    rendered = render_email(email_type, _hostile_data())

    assert "<script>" not in rendered.html
    assert "<img" not in rendered.html
    assert "<b>Falsa</b>" not in rendered.html
    assert escape_html(HOSTILE_NAME) in rendered.html


@pytest.mark.parametrize("email_type", ["pending", "paid", "on_route", "delivered", "picked_up", "pending_reminder"])
def test_templates_embed_escaped_tracking_url(email_type):
    rendered = render_email(email_type, _hostile_data())

    assert 'href="https://arriendocajas.test/track/0939AB12C/XY7Z9?a=1&amp;b=&quot;2&quot;"' in rendered.html


def test_on_route_includes_escaped_driver():
    rendered = render_email("on_route", _hostile_data())

    assert "&lt;img src=x onerror=alert(1)&gt;" in rendered.html
    assert "+56 9 &lt;1234&gt;" in rendered.html


def test_pending_breakdown_lists_products_and_guarantee():
    rendered = render_email("pending", _hostile_data())

    assert "1x Carrito &lt;plegable&gt;: $15.000" in rendered.html
    assert "$30.000" in rendered.html
    assert "$150.000" in rendered.html
    # 150000 - 30000 guarantee - 15000 products
    assert "$105.000" in rendered.html
    assert rendered.subject == "📋 Cotización Recibida - Código 0939AB12C"


def test_delivered_mentions_quantity_and_address():
    data = sample_email_data()
    rendered = render_email("delivered", data)

    assert "10 cajas" in rendered.html
    assert data.delivery_address in rendered.html
    assert "17 de enero de 2025" in rendered.html
    assert rendered.subject.endswith(data.tracking_code)


def test_unknown_email_type_renders_nothing():
    assert render_email("newsletter", sample_email_data()) is None


def test_money_and_date_formatting():
    assert format_clp(15000) == "$15.000"
    assert format_clp(1234567.4) == "$1.234.567"
    assert format_clp(None) == "$0"
    assert format_clp(-2000) == "-$2.000"
    assert format_date_long(date(2025, 1, 10)) == "10 de enero de 2025"
    assert format_date_long(None) == "Por confirmar"
    assert format_date_short(date(2025, 3, 5)) == "05-03-2025"


def test_every_template_has_text_alternative():
    data = sample_email_data()
    for email_type in TEMPLATES:
        rendered = render_email(email_type, data)
        assert rendered.text
        assert rendered.subject
        assert rendered.html.startswith("<!DOCTYPE html>")
