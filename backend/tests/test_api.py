"""
API tests through the FastAPI TestClient

The lifespan runs against the temporary database configured in conftest.
"""
import uuid

import pytest
from fastapi.testclient import TestClient

from halo.main import app


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_id():
    return f"user_{uuid.uuid4().hex[:8]}"


def add_verified_card(client, user_id, number="5555555555554444"):
    response = client.post("/api/payment-methods", json={
        "user_id": user_id,
        "card_number": number,
        "card_holder_name": "Jane Smith",
        "card_exp_month": 12,
        "card_exp_year": 2099,
    })
    assert response.status_code == 200
    data = response.json()

    pm_id = data["payment_method"]["id"]
    if data["requires_verification"]:
        verify = client.post(
            f"/api/payment-methods/{pm_id}/verify",
            params={"user_id": user_id},
            json={"otp": data["demo_otp"]},
        )
        assert verify.status_code == 200
        assert verify.json()["verified"] is True

    return pm_id


class TestBasics:

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["protocols"] == ["acp", "ucp", "x402"]
        assert response.json()["payment_processor"]["status"] == "operational"
        assert response.json()["card_vault"]["status"] == "operational"

    def test_parse_intent(self, client):
        response = client.post("/halo/intents/parse", json={"text": "Buy a desk for 500 dollars"})

        assert response.json() == {
            "parsed": True,
            "intent": {
                "action": "buy",
                "item": "desk",
                "amount": 500.0,
                "currency": "USD",
                "shippingSpeed": "standard",
            },
        }

    def test_parse_non_commerce(self, client):
        response = client.post("/halo/intents/parse", json={"text": "How are you?"})

        assert response.status_code == 200
        assert response.json() == {"parsed": False, "intent": None}

    def test_list_protocols(self, client):
        data = client.get("/halo/protocols").json()

        assert data["count"] == 3
        assert data["protocols"][0]["name"] == "acp"

    def test_detect(self, client):
        response = client.post("/halo/detect", json={"intent": {"action": "buy", "params": {}}})
        assert response.json()["protocol"] == "ucp"

    def test_detect_unknown(self, client):
        response = client.post("/halo/detect", json={"foo": "bar"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "halo:protocol:unknown"

    def test_build_and_normalize(self, client):
        built = client.post("/halo/build", json={
            "protocol": "acp",
            "intent": {"item": "book", "amount": 25, "currency": "USD", "shippingSpeed": "express"},
        })
        assert built.status_code == 200

        normalized = client.post("/halo/normalize", json={"payload": built.json()["payload"]})

        assert normalized.status_code == 200
        assert normalized.json()["halo_normalized"]["total_cents"] == 2500
        assert normalized.json()["halo_normalized"]["shipping_speed"] == "express"

    def test_normalize_gap(self, client):
        response = client.post("/halo/normalize", json={"payload": {"payload": {"total_amount": 1}}})

        assert response.status_code == 422
        assert response.json()["error_code"] == "halo:normalization:gap"

    def test_risk_assess(self, client):
        response = client.post("/halo/risk/assess", json={
            "payload": {"payload": {"total_amount": 600, "currency": "USD"}}
        })

        assert response.status_code == 200
        assert response.json()["protocol"] == "acp"
        assert response.json()["risk"] == {
            "risk_score": 35,
            "decision": "challenge",
            "factors": ["high_value"],
            "velocity_count": 0,
        }

    @pytest.mark.parametrize("payload", [
        {"payload": {"total_amount": "inf", "currency": "USD"}},
        {
            "x402Version": 2,
            "resource": {"url": "https://example.com/r"},
            "accepts": [{"network": "n", "asset": "a", "amount": "12.5USDC", "payTo": "p"}],
        },
    ])
    def test_normalize_unusable_amount(self, client, payload):
        response = client.post("/halo/normalize", json={"payload": payload})

        assert response.status_code == 422
        assert response.json()["error_code"] == "halo:normalization:gap"

    def test_prepare_catalog_miss(self, client):
        response = client.post("/halo/checkout/prepare", json={"text": "buy a unicorn", "protocol": "acp"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "halo:catalog:miss"

    def test_prepare_unparseable(self, client):
        response = client.post("/halo/checkout/prepare", json={"text": "hello", "protocol": "acp"})
        assert response.json()["error_code"] == "halo:intent:unparseable"

    def test_validate_card(self, client):
        data = client.post("/api/cards/validate", json={
            "card_number": "378282246310005", "exp_month": 1, "exp_year": 2099
        }).json()

        assert data["valid"] is True
        assert data["brand"] == "amex"
        assert data["formatted"] == "3782 822463 10005"


class TestVerificationEndpoints:

    def test_otp_flow(self, client):
        challenge = client.post("/api/verification/start", json={"amount": 150, "method": "otp"}).json()
        token = challenge["session_token"]
        assert challenge["state"] == "awaiting_input"

        wrong = "000000" if challenge["display_otp"] != "000000" else "111111"
        bad = client.post(f"/api/verification/{token}/otp", json={"otp": wrong}).json()
        assert bad["state"] == "failed"
        assert bad["error_code"] == "halo:verification:failed"

        good = client.post(f"/api/verification/{token}/otp", json={"otp": challenge["display_otp"]}).json()
        assert good["verified"] is True

    def test_non_digit_otp_rejected(self, client):
        token = client.post("/api/verification/start", json={"amount": 150}).json()["session_token"]

        response = client.post(f"/api/verification/{token}/otp", json={"otp": "١٢٣٤٥٦"})

        assert response.status_code == 422
        assert client.get(f"/api/verification/{token}").json()["state"] == "awaiting_input"

    def test_biometric_flow(self, client):
        challenge = client.post("/api/verification/start", json={"amount": 900, "method": "face_id"}).json()
        assert challenge["state"] == "verifying"

        result = client.post(f"/api/verification/{challenge['session_token']}/biometric").json()
        assert result["state"] == "verified"

    def test_get_session_state(self, client):
        token = client.post("/api/verification/start", json={"amount": 150}).json()["session_token"]

        session = client.get(f"/api/verification/{token}")
        assert session.status_code == 200
        assert session.json()["state"] == "awaiting_input"
        assert session.json()["verified"] is False

        client.delete(f"/api/verification/{token}")
        assert client.get(f"/api/verification/{token}").status_code == 400

    def test_cancel(self, client):
        token = client.post("/api/verification/start", json={"amount": 150}).json()["session_token"]

        assert client.delete(f"/api/verification/{token}").json()["cancelled"] is True

        response = client.post(f"/api/verification/{token}/otp", json={"otp": "123456"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "halo:verification:session_invalid"


class TestCheckoutFlow:

    def test_high_value_checkout(self, client, user_id):
        pm_id = add_verified_card(client, user_id)

        prep = client.post("/halo/checkout/prepare", json={
            "text": "Buy nike shoes for $120 with express shipping", "protocol": "ucp"
        }).json()
        assert prep["step_up_required"] is True

        submission = {"user_id": user_id, "payment_method_id": pm_id, "payload": prep["payload"]}

        blocked = client.post("/halo/checkout/submit", json=submission)
        assert blocked.status_code == 403
        assert blocked.json()["error_code"] == "halo:verification:required"

        challenge = client.post("/api/verification/start", json={"amount": 120}).json()
        client.post(f"/api/verification/{challenge['session_token']}/otp", json={"otp": challenge["display_otp"]})

        submitted = client.post(
            "/halo/checkout/submit",
            json={**submission, "session_token": challenge["session_token"]},
        )
        assert submitted.status_code == 200
        order = submitted.json()
        assert order["status"] == "authorized"
        assert order["normalized"]["halo_normalized"]["total_cents"] == 12000

        history = client.get(f"/api/orders/user/{user_id}").json()
        assert [o["order_id"] for o in history["orders"]] == [order["order_id"]]
        assert history["orders"][0]["protocol"] == "ucp"

        single = client.get(f"/api/orders/{order['order_id']}")
        assert single.json()["shipping_speed"] == "express"

    def test_prepare_reports_risk(self, client):
        prep = client.post("/halo/checkout/prepare", json={
            "text": "Buy nike shoes for $120 with express shipping", "protocol": "acp"
        }).json()

        assert prep["risk"]["decision"] == "challenge"
        assert prep["risk"]["risk_score"] == 30
        assert prep["risk"]["factors"] == ["moderate_value", "express_shipping"]

    def test_blocked_checkout(self, client, user_id):
        pm_id = add_verified_card(client, user_id)

        response = client.post("/halo/checkout/submit", json={
            "user_id": user_id,
            "payment_method_id": pm_id,
            "payload": {"payload": {
                "total_amount": 1100, "currency": "USD", "country": "FR", "shipping_type": "express"
            }},
        })

        assert response.status_code == 403
        assert response.json()["error_code"] == "halo:risk:blocked"
        assert client.get(f"/api/orders/user/{user_id}").json()["orders"] == []

    def test_risk_challenge_needs_forced_session(self, client, user_id):
        pm_id = add_verified_card(client, user_id)
        submission = {
            "user_id": user_id,
            "payment_method_id": pm_id,
            "payload": {"payload": {"total_amount": 60, "currency": "USD", "country": "GB"}},
        }

        auto = client.post("/api/verification/start", json={"amount": 60}).json()
        assert auto["step_up_required"] is False
        rejected = client.post("/halo/checkout/submit", json={**submission, "session_token": auto["session_token"]})
        assert rejected.status_code == 403
        assert rejected.json()["error_code"] == "halo:verification:required"

        forced = client.post("/api/verification/start", json={"amount": 60, "force": True}).json()
        assert forced["step_up_required"] is True
        client.post(f"/api/verification/{forced['session_token']}/otp", json={"otp": forced["display_otp"]})

        submitted = client.post("/halo/checkout/submit", json={**submission, "session_token": forced["session_token"]})
        assert submitted.status_code == 200
        assert submitted.json()["risk"]["decision"] == "challenge"

    def test_unverified_card_cannot_pay(self, client, user_id):
        response = client.post("/api/payment-methods", json={
            "user_id": user_id,
            "card_number": "5555555555554444",
            "card_holder_name": "Jane Smith",
            "card_exp_month": 12,
            "card_exp_year": 2099,
        })
        pm_id = response.json()["payment_method"]["id"]
        prep = client.post("/halo/checkout/prepare", json={"text": "buy a book for $25"}).json()

        result = client.post("/halo/checkout/submit", json={
            "user_id": user_id, "payment_method_id": pm_id, "payload": prep["payload"]
        })

        assert result.status_code == 400
        assert result.json()["error_code"] == "halo:payment_method:unavailable"


class TestPaymentMethodEndpoints:

    def test_crud(self, client, user_id):
        first = add_verified_card(client, user_id)
        second = add_verified_card(client, user_id, "4242424242424242")

        listing = client.get("/api/payment-methods", params={"user_id": user_id}).json()
        assert listing["count"] == 2
        assert all(pm["verification_otp"] is None for pm in listing["payment_methods"])

        client.post(f"/api/payment-methods/{second}/default", params={"user_id": user_id})
        assert client.get(
            f"/api/payment-methods/{second}", params={"user_id": user_id}
        ).json()["is_default"] is True

        client.delete(f"/api/payment-methods/{first}", params={"user_id": user_id})
        listing = client.get("/api/payment-methods", params={"user_id": user_id}).json()
        assert [pm["id"] for pm in listing["payment_methods"]] == [second]

    def test_invalid_card(self, client, user_id):
        response = client.post("/api/payment-methods", json={
            "user_id": user_id,
            "card_number": "4242424242424241",
            "card_holder_name": "Jane Smith",
            "card_exp_month": 12,
            "card_exp_year": 2099,
        })

        assert response.status_code == 400
        assert response.json()["error_code"] == "halo:card:invalid"

    def test_short_card_is_not_stored(self, client, user_id):
        response = client.post("/api/payment-methods", json={
            "user_id": user_id,
            "card_number": "card-number-0",
            "card_holder_name": "Jane Smith",
            "card_exp_month": 12,
            "card_exp_year": 2099,
        })

        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "format"

        listing = client.get("/api/payment-methods", params={"user_id": user_id})
        assert listing.status_code == 200

    def test_not_found(self, client, user_id):
        response = client.get("/api/payment-methods/pm_missing", params={"user_id": user_id})
        assert response.status_code == 404

    def test_missing_order(self, client):
        assert client.get("/api/orders/ord_missing").status_code == 404
