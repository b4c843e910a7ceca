import pytest

from tests.helpers import url_prefix, wrong_code

PHONE = "+15551234567"


async def test_send_and_verify(ac_client, outbox):
    resp = await ac_client.post(f"{url_prefix}/otp/send", json={"phoneNumber": "+1 555-123-4567"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "OTP sent successfully"
    data = body["data"]
    assert data["phoneNumber"] == PHONE
    assert data["messageId"] == "outbox_1"
    assert len(data["trackingId"]) == 32
    assert data["provider"] == outbox.name
    assert data["reasoning"]
    assert data["expiresAt"].endswith("Z")
    assert data["remaining"] == 4
    # the code only ever travels by sms
    assert "code" not in data
    assert outbox.last_code(PHONE) not in data.values()

    resp = await ac_client.post(f"{url_prefix}/otp/verify",
                                json={"phoneNumber": PHONE, "code": outbox.last_code(PHONE)})
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "OTP verified successfully"
    assert body["data"]["phoneNumber"] == PHONE
    assert body["data"]["verifiedAt"].endswith("Z")
    assert body["data"]["remaining"] == 9

    resp = await ac_client.post(f"{url_prefix}/otp/verify",
                                json={"phoneNumber": PHONE, "code": outbox.last_code(PHONE)})
    assert resp.status_code == 404
    assert resp.json()["code"] == "OTP_NOT_FOUND"


async def test_wrong_codes_then_exhausted(ac_client, outbox):
    await ac_client.post(f"{url_prefix}/otp/send", json={"phoneNumber": PHONE})
    bad = wrong_code(outbox.last_code(PHONE))

    for expected in (2, 1, 0):
        resp = await ac_client.post(f"{url_prefix}/otp/verify", json={"phoneNumber": PHONE, "code": bad})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "OTP_INVALID_CODE"
        assert body["error"] == "Invalid OTP code"
        assert body["attemptsRemaining"] == expected

    resp = await ac_client.post(f"{url_prefix}/otp/verify", json={"phoneNumber": PHONE, "code": bad})
    assert resp.status_code == 400
    assert resp.json()["code"] == "OTP_ATTEMPTS_EXHAUSTED"

    resp = await ac_client.post(f"{url_prefix}/otp/verify", json={"phoneNumber": PHONE, "code": bad})
    assert resp.status_code == 404


@pytest.mark.parametrize("payload", [
    {},
    {"phoneNumber": ""},
    {"phoneNumber": PHONE, "provider": "azure"},
])
async def test_send_rejects_bad_payload(ac_client, payload):
    resp = await ac_client.post(f"{url_prefix}/otp/send", json=payload)
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


async def test_send_rejects_unprefixed_number(ac_client, outbox):
    resp = await ac_client.post(f"{url_prefix}/otp/send", json={"phoneNumber": "5551234567"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid phone number format"
    assert outbox.sent == []


@pytest.mark.parametrize("code", ["12345", "1234567", "12ab56"])
async def test_verify_rejects_malformed_code(ac_client, outbox, code):
    await ac_client.post(f"{url_prefix}/otp/send", json={"phoneNumber": PHONE})
    resp = await ac_client.post(f"{url_prefix}/otp/verify", json={"phoneNumber": PHONE, "code": code})
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


async def test_send_with_template(ac_client, outbox):
    resp = await ac_client.post(f"{url_prefix}/otp/send",
                                json={"phoneNumber": PHONE, "template": "Use {code} to sign in"})
    assert resp.status_code == 200
    assert outbox.last_message(PHONE).startswith("Use ")


async def test_send_failure_is_500(ac_client, outbox):
    outbox.fail_with = "carrier rejected"
    resp = await ac_client.post(f"{url_prefix}/otp/send", json={"phoneNumber": PHONE})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Failed to send SMS"
    assert body["code"] == "UPSTREAM_FAILURE"
    assert "carrier rejected" not in resp.text

    resp = await ac_client.post(f"{url_prefix}/otp/verify", json={"phoneNumber": PHONE, "code": "123456"})
    assert resp.status_code == 404


async def test_verify_rate_limit(ac_client, settings):
    for _ in range(settings.OTP_VERIFY_LIMIT):
        resp = await ac_client.post(f"{url_prefix}/otp/verify", json={"phoneNumber": PHONE, "code": "123456"})
        assert resp.status_code == 404

    resp = await ac_client.post(f"{url_prefix}/otp/verify", json={"phoneNumber": PHONE, "code": "123456"})
    assert resp.status_code == 429
    assert resp.json()["error"] == "Too many verification attempts. Please try again later."


async def test_providers_and_status(ac_client):
    resp = await ac_client.get(f"{url_prefix}/otp/providers")
    assert resp.status_code == 200
    ids = [p["id"] for p in resp.json()["data"]["providers"]]
    assert ids == ["demo", "twilio", "aws"]

    send = await ac_client.post(f"{url_prefix}/otp/send", json={"phoneNumber": PHONE})
    message_id = send.json()["data"]["messageId"]

    resp = await ac_client.post(f"{url_prefix}/otp/status", json={"provider": "demo", "messageId": message_id})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"messageId": message_id, "status": "delivered", "delivered": True}


@pytest.mark.parametrize("path", ["/otp/send", "/otp/verify"])
async def test_get_is_method_not_allowed(ac_client, path):
    resp = await ac_client.get(f"{url_prefix}{path}")
    assert resp.status_code == 405
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Method not allowed. Use POST."
