# tests/services/test_idempotency.py
from checkout.services.payment.idempotency import external_reference, idempotency_key, pricing_fingerprint


def _fingerprint(**overrides):
    fields = dict(method="pix", plan="pro", billing="monthly", total_cents=1990, coupon="", months=1, unit_cents=1990)
    fields.update(overrides)
    return pricing_fingerprint(**fields)


def _key(**overrides):
    fields = dict(
        external_reference="order:abc:rev:0",
        method="pix",
        fingerprint=_fingerprint(),
        cpf="529.982.247-25",
        email="Buyer@Example.com",
    )
    fields.update(overrides)
    return idempotency_key(**fields)


def test_external_reference_format():
    assert external_reference("abc-123", 4) == "order:abc-123:rev:4"


def test_fingerprint_is_stable():
    assert _fingerprint() == _fingerprint()
    assert len(_fingerprint()) == 64


def test_fingerprint_changes_with_price_relevant_fields():
    base = _fingerprint()
    assert _fingerprint(total_cents=995) != base
    assert _fingerprint(coupon="HALF") != base
    assert _fingerprint(method="boleto") != base
    assert _fingerprint(billing="annual", months=12, unit_cents=1659, total_cents=19908) != base


def test_idempotency_key_is_pure():
    assert _key() == _key()


def test_idempotency_key_normalizes_cpf_and_email():
    assert _key(cpf="52998224725", email="buyer@example.com ") == _key()


def test_idempotency_key_depends_on_each_input():
    base = _key()
    assert _key(external_reference="order:abc:rev:1") != base
    assert _key(method="boleto") != base
    assert _key(fingerprint=_fingerprint(total_cents=100)) != base
    assert _key(cpf="11144477735") != base
    assert _key(email="other@example.com") != base
