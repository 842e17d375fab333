from __future__ import annotations

import pytest

from gerencia.classifier import StatusClassifier, StatusVocabulary, raw_status_of


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("approved", "approved"),
        ("PAID", "approved"),
        ("order.completed", "approved"),
        ("purchase_approved", "approved"),
        ("sale", "approved"),
        ("waiting_payment", "pending"),
        ("pix_pending", "pending"),
        ("refunded", "refunded"),
        ("chargeback_issued", "refunded"),
        ("dispute_opened", "refunded"),
        ("Canceled", "cancelled"),
        ("cart_abandoned", "cancelled"),
        ("expired", "cancelled"),
    ],
)
def test_classify_known_vocabulary(raw: str, expected: str) -> None:
    assert StatusClassifier().classify(raw) == expected


def test_rule_order_beats_catch_all_keywords() -> None:
    c = StatusClassifier()
    # "sale" / "purchase" appear in these, but the earlier rules must win.
    assert c.classify("sale_pending") == "pending"
    assert c.classify("purchase_refunded") == "refunded"
    assert c.classify("sale_cancelled") == "cancelled"
    # "paid" sits inside "unpaid_waiting"; pending is checked first.
    assert c.classify("unpaid_waiting") == "pending"


def test_unknown_status_passes_through_lowercased() -> None:
    assert StatusClassifier().classify("On_Hold") == "on_hold"
    assert StatusClassifier().classify("") == ""


def test_custom_vocabulary_is_injected() -> None:
    vocab = StatusVocabulary(rules=(("approved", ("aprovado",)), ("pending", ("aguardando",))))
    c = StatusClassifier(vocab)
    assert c.classify("Pagamento Aprovado") == "approved"
    assert c.classify("aguardando_pix") == "pending"
    # Default keywords are not active with a custom vocabulary.
    assert c.classify("paid") == "paid"


def test_raw_status_of_prefers_status_then_event() -> None:
    assert raw_status_of({"status": "paid", "event": "sale.created"}) == "paid"
    assert raw_status_of({"status": "", "event": "sale.created"}) == "sale.created"
    assert raw_status_of({}) == "unknown"


def test_vocabulary_rejects_non_canonical_targets() -> None:
    with pytest.raises(ValueError, match="paid"):
        StatusVocabulary(rules=(("paid", ("aprovado",)),))
