import json
import logging

import pytest

from storefront.errors import NotFoundError, ValidationError, require_fields
from storefront.logger import CustomJsonFormatter, LOG_FORMAT, LogstashTcpHandler
from storefront.schemas import OrderCreate


async def test_metrics_are_exposed(client):
    await client.get("/api/order", params={"user_id": 1})

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "http_request" in response.text


async def test_cors_preflight(client):
    response = await client.options(
        "/api/order/add",
        headers={"Origin": "http://shop.example", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert "access-control-allow-origin" in response.headers


async def test_malformed_body_is_bad_request(client):
    response = await client.post("/api/order/add", json={"user_id": "seven", "items": []})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request format"


def test_require_fields_treats_empty_string_as_missing():
    order = OrderCreate(user_id=1, pay_type="", total=3.5, items=[])

    try:
        require_fields(order, "user_id", "pay_type", "total", "items")
    except ValidationError as e:
        assert e.status_code == 400
        assert e.to_content() == {"message": "Missing required fields"}
    else:
        raise AssertionError("empty pay_type accepted")

    require_fields(OrderCreate(user_id=1, pay_type="card", total=3.5, items=[]), "user_id", "pay_type", "items")


def test_error_content_includes_underlying_error():
    assert NotFoundError("Order not found", "no rows").to_content() == {"message": "Order not found", "error": "no rows"}


def test_json_formatter_adds_level_and_extra():
    record = logging.LogRecord("storefront", logging.WARNING, __file__, 1, "Order not found", None, None)
    record.order_id = 12

    payload = json.loads(CustomJsonFormatter(LOG_FORMAT).format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "storefront"
    assert payload["message"] == "Order not found"
    assert payload["order_id"] == 12
    assert "timestamp" in payload


def test_require_fields_treats_zero_as_missing():
    with pytest.raises(ValidationError):
        require_fields(OrderCreate(user_id=0, pay_type="card", total=3.5, items=[]), "user_id")

    require_fields(OrderCreate(user_id=1, pay_type="card", total=3.5, items=[]), "user_id", "items")


def test_logstash_handler_frames_json_lines():
    handler = LogstashTcpHandler("logstash.invalid", 5000)
    handler.setFormatter(CustomJsonFormatter(LOG_FORMAT))
    record = logging.LogRecord("storefront", logging.INFO, __file__, 1, "Order created", None, None)

    frame = handler.makePickle(record)

    assert frame.endswith(b"\n")
    assert json.loads(frame)["message"] == "Order created"
    handler.close()
