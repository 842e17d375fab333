from __future__ import annotations

import logging

import pytest

from gerencia.classifier import StatusClassifier
from gerencia.extractors import GenericExtractor, LowifyExtractor
from gerencia.normalizer import normalize
from gerencia.registry import build_extractor
from gerencia.util import to_float


def test_lowify_reads_buyer_and_offer_fallbacks() -> None:
    out = LowifyExtractor().extract(
        {
            "order_id": 98765,
            "buyer": {"name": "Ana", "email": "ana@example.com", "phone": "+5511999990000"},
            "offer": {"id": "off-1", "name": "Curso X"},
            "product": {"price": "197.90"},
            "payment_type": "pix",
        }
    )
    assert out.transaction_id == "98765"
    assert out.customer_name == "Ana"
    assert out.customer_email == "ana@example.com"
    assert out.product_id == "off-1"
    assert out.product_name == "Curso X"
    assert out.amount == pytest.approx(197.90)
    assert out.currency == "BRL"
    assert out.payment_method == "pix"
    assert out.commission == 0.0


def test_lowify_amount_priority_and_zero_fall_through() -> None:
    ex = LowifyExtractor()
    assert ex.extract({"sale_amount": 50, "value": 10}).amount == 50
    # An explicit 0 is falsy and falls through to the next candidate.
    assert ex.extract({"sale_amount": 0, "payment": {"amount": 30}}).amount == 30
    assert ex.extract({"price": "12.5"}).amount == 12.5
    assert ex.extract({"sale_amount": "abc"}).amount == 0.0


def test_generic_ignores_lowify_only_fields() -> None:
    out = GenericExtractor().extract(
        {
            "id": "tx-1",
            "buyer": {"email": "b@example.com"},
            "sale_amount": 99,
            "payment": {"amount": 42.0, "currency": "USD", "method": "card"},
            "commission": "4.20",
        }
    )
    assert out.transaction_id == "tx-1"
    assert out.customer_email is None
    assert out.amount == 42.0
    assert out.currency == "USD"
    assert out.payment_method == "card"
    assert out.commission == pytest.approx(4.2)


def test_generic_tolerates_odd_shapes() -> None:
    out = GenericExtractor().extract({"customer": "not-a-dict", "product": ["x"], "amount": None})
    assert out.customer_name is None
    assert out.product_name is None
    assert out.amount == 0.0


def test_build_extractor_is_case_insensitive_with_generic_fallback() -> None:
    assert build_extractor("Lowify").name == "lowify"
    assert build_extractor("hotmart").name == "generic"
    assert build_extractor("").name == "generic"


def test_normalize_keeps_payload_and_classifies(caplog: pytest.LogCaptureFixture) -> None:
    payload = {"transaction_id": "t1", "status": "waiting_payment", "customer": {"name": "Bia"}}
    with caplog.at_level(logging.WARNING, logger="gerencia.normalizer"):
        sale = normalize("Kiwify", payload, user_id="u1", webhook_id="w1", classifier=StatusClassifier())
    assert sale.platform == "kiwify"
    assert sale.status == "pending"
    assert sale.amount == 0.0
    assert sale.raw_data == payload
    assert sale.user_id == "u1"
    assert sale.webhook_id == "w1"
    assert any("amount=0" in r.getMessage() for r in caplog.records)


def test_oversized_integer_amount_falls_back_to_zero() -> None:
    assert to_float(10**400) == 0.0
    assert to_float(-(10**400), default=1.5) == 1.5
    assert GenericExtractor().extract({"status": "paid", "amount": 10**400}).amount == 0.0
