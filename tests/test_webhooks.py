import json

import pytest
from sqlalchemy.exc import OperationalError

from core.errors import ConfigurationError, InvalidSignature
from models.payment import Payment, PaymentStatus
from models.user import User
from services.signatures import sign_webhook
from services.webhooks import DEFAULT_FAILURE_REASON, WebhookReconciler
from factories import CHECKOUT_SECRET, WEBHOOK_SECRET, create_payment, webhook_body


@pytest.fixture
def reconciler(store):
    return WebhookReconciler(store, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def payment(store, test_user):
    return create_payment(store, test_user)


def deliver(reconciler, body: bytes, secret: str = WEBHOOK_SECRET):
    return reconciler.handle(body, sign_webhook(body, secret))


class TestWebhookSignature:
    def test_bad_signature_rejected_without_mutation(self, reconciler, payment, activations):
        body = webhook_body("payment.captured", payment.gateway_order_id)

        with pytest.raises(InvalidSignature):
            reconciler.handle(body, "0" * 64)

        assert payment.status == PaymentStatus.CREATED
        assert activations == []

    def test_checkout_secret_cannot_sign_webhooks(self, reconciler, payment):
        body = webhook_body("payment.captured", payment.gateway_order_id)

        with pytest.raises(InvalidSignature):
            deliver(reconciler, body, secret=CHECKOUT_SECRET)

        assert payment.status == PaymentStatus.CREATED

    def test_body_is_not_parsed_before_verification(self, reconciler, monkeypatch):
        def explode(*args, **kwargs):
            raise AssertionError("parsed an unauthenticated body")

        monkeypatch.setattr(json, "loads", explode)
        with pytest.raises(InvalidSignature):
            reconciler.handle(b"{not json", "bad")

    def test_missing_secret_is_configuration_error(self, store, payment):
        reconciler = WebhookReconciler(store, webhook_secret="")
        body = webhook_body("payment.captured", payment.gateway_order_id)

        with pytest.raises(ConfigurationError):
            reconciler.handle(body, sign_webhook(body, CHECKOUT_SECRET))

        assert payment.status == PaymentStatus.CREATED


class TestPaymentCaptured:
    def test_marks_paid_without_signature(self, reconciler, payment, test_user, activations, db_session_override):
        ack = deliver(reconciler, webhook_body("payment.captured", payment.gateway_order_id, "pay_777"))

        assert ack.status == "ok"
        assert payment.status == PaymentStatus.PAID
        assert payment.gateway_payment_id == "pay_777"
        assert payment.gateway_signature is None
        assert payment.paid_at is not None
        assert activations == [(test_user.id, payment.plan)]
        assert db_session_override.get(User, test_user.id).subscription_plan == "premium"

    def test_duplicate_delivery_is_noop(self, reconciler, payment, activations):
        body = webhook_body("payment.captured", payment.gateway_order_id, "pay_777")

        deliver(reconciler, body)
        paid_at = payment.paid_at
        ack = deliver(reconciler, body)

        assert ack.status == "ok"
        assert payment.status == PaymentStatus.PAID
        assert payment.paid_at == paid_at
        assert len(activations) == 1

    def test_captured_after_failure_stays_failed(self, reconciler, payment, activations):
        deliver(reconciler, webhook_body("payment.failed", payment.gateway_order_id))
        deliver(reconciler, webhook_body("payment.captured", payment.gateway_order_id))

        assert payment.status == PaymentStatus.FAILED
        assert activations == []

    def test_unknown_order_is_acknowledged(self, reconciler, db_session_override):
        ack = deliver(reconciler, webhook_body("payment.captured", "order_elsewhere"))

        assert ack.status == "ok"
        assert db_session_override.query(Payment).count() == 0


class TestPaymentFailed:
    def test_records_provider_reason(self, reconciler, payment):
        deliver(
            reconciler,
            webhook_body("payment.failed", payment.gateway_order_id, error_description="Card declined by bank"),
        )

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Card declined by bank"
        assert payment.gateway_payment_id is None

    def test_default_reason(self, reconciler, payment):
        deliver(reconciler, webhook_body("payment.failed", payment.gateway_order_id))

        assert payment.failure_reason == DEFAULT_FAILURE_REASON

    def test_duplicate_failure_keeps_first_reason(self, reconciler, payment):
        deliver(reconciler, webhook_body("payment.failed", payment.gateway_order_id, error_description="first"))
        deliver(reconciler, webhook_body("payment.failed", payment.gateway_order_id, error_description="second"))

        assert payment.failure_reason == "first"

    def test_late_failure_after_paid_is_ignored(self, reconciler, payment, activations):
        deliver(reconciler, webhook_body("payment.captured", payment.gateway_order_id))
        deliver(reconciler, webhook_body("payment.failed", payment.gateway_order_id, error_description="timeout"))

        assert payment.status == PaymentStatus.PAID
        assert payment.failure_reason is None
        assert len(activations) == 1


class TestOtherDeliveries:
    @pytest.mark.parametrize("event", ["order.paid", "payment.authorized", "refund.created", None])
    def test_other_events_acknowledged_without_change(self, reconciler, payment, event):
        body = json.dumps(
            {"event": event, "payload": {"payment": {"entity": {"id": "pay_1", "order_id": payment.gateway_order_id}}}}
        ).encode()

        ack = deliver(reconciler, body)

        assert ack.status == "ok"
        assert payment.status == PaymentStatus.CREATED

    @pytest.mark.parametrize(
        "body",
        [
            b"{not json",
            b"\xff\xfe",
            b"[1, 2, 3]",
            b'{"event": "payment.captured"}',
            b'{"event": "payment.captured", "payload": {"payment": {"entity": {"id": "pay_1"}}}}',
            b'{"event": "payment.failed", "payload": "oops"}',
            b'{"event": "payment.captured", "payload": {"payment": {"entity": {"id": "pay_1", "order_id": {"nested": 1}}}}}',
            b'{"event": "payment.captured", "payload": {"payment": {"entity": {"id": "pay_1", "order_id": ["order_test0001"]}}}}',
            b'{"event": "payment.failed", "payload": {"payment": {"entity": {"id": "pay_1", "order_id": 42}}}}',
            b'{"event": "payment.captured", "payload": {"payment": {"entity": {"id": {"x": 1}, "order_id": "order_test0001"}}}}',
            b'{"event": "payment.captured", "payload": {"payment": {"entity": {"order_id": "order_test0001"}}}}',
            b'{"event": "payment.captured", "payload": {"payment": {"entity": {"id": "", "order_id": "order_test0001"}}}}',
        ],
    )
    def test_malformed_authenticated_bodies_acknowledged(self, reconciler, payment, activations, body):
        ack = deliver(reconciler, body)

        assert ack.status == "ok"
        assert payment.status == PaymentStatus.CREATED
        assert payment.gateway_payment_id is None
        assert activations == []

    def test_non_text_failure_reason_uses_default(self, reconciler, payment):
        body = webhook_body("payment.failed", payment.gateway_order_id, error_description={"code": "BAD"})

        ack = deliver(reconciler, body)

        assert ack.status == "ok"
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == DEFAULT_FAILURE_REASON

    def test_store_error_is_logged_and_acknowledged(self, reconciler, payment, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("UPDATE payments", {}, Exception("database is locked"))

        monkeypatch.setattr(reconciler.store, "mark_paid", broken)

        ack = deliver(reconciler, webhook_body("payment.captured", payment.gateway_order_id))

        assert ack.status == "ok"
        assert reconciler.store.get_by_gateway_order_id(payment.gateway_order_id).status == PaymentStatus.CREATED
