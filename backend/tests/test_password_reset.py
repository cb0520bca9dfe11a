from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

import auth
import models
from services.password_reset import OTP_MAX_ATTEMPTS


@pytest.fixture
def sent_otps():
    """Capture OTPs instead of emailing them."""
    captured = []

    async def fake_send(to_email, user_name, otp):
        captured.append(otp)
        return True

    with patch("routers.auth.send_otp_email", side_effect=fake_send), \
         patch("routers.auth.send_password_changed_notification", new=AsyncMock(return_value=True)):
        yield captured


def request_otp(client, email="test@example.com"):
    return client.post("/api/auth/validate-email", json={"email": email})


def test_full_reset_flow(client, test_user, sent_otps):
    assert request_otp(client).status_code == 200
    otp = sent_otps[-1]
    assert len(otp) == 4 and otp.isdigit()

    verified = client.post("/api/auth/verify-otp", json={"email": "test@example.com", "otp": otp})
    assert verified.status_code == 200
    reset_token = verified.json()["resetToken"]

    reset = client.post(
        "/api/auth/reset-password",
        json={"email": "test@example.com", "resetToken": reset_token, "newPassword": "brandnew1"}
    )
    assert reset.status_code == 200

    login = client.post("/api/auth/login", json={"email": "test@example.com", "password": "brandnew1"})
    assert login.status_code == 200

    # Token is single use
    again = client.post(
        "/api/auth/reset-password",
        json={"email": "test@example.com", "resetToken": reset_token, "newPassword": "another1"}
    )
    assert again.status_code == 400


def test_unknown_email_is_404(client, sent_otps):
    assert request_otp(client, "nobody@example.com").status_code == 404
    assert sent_otps == []


def test_email_failure_is_500(client, test_user):
    with patch("routers.auth.send_otp_email", new=AsyncMock(return_value=False)):
        response = request_otp(client)
    assert response.status_code == 500


def test_otp_is_stored_hashed(client, db_session, test_user, sent_otps):
    request_otp(client)

    record = db_session.query(models.PasswordResetOtp).one()
    assert record.otp_hash == auth.hash_token(sent_otps[-1])
    assert record.otp_hash != sent_otps[-1]


def test_new_otp_invalidates_previous(client, test_user, sent_otps):
    request_otp(client)
    request_otp(client)
    first, second = sent_otps

    if first != second:
        stale = client.post("/api/auth/verify-otp", json={"email": "test@example.com", "otp": first})
        assert stale.status_code == 400

    fresh = client.post("/api/auth/verify-otp", json={"email": "test@example.com", "otp": second})
    assert fresh.status_code == 200


def test_wrong_otp_counts_attempts(client, db_session, test_user, sent_otps):
    request_otp(client)
    wrong = "0000" if sent_otps[-1] != "0000" else "1111"

    for _ in range(OTP_MAX_ATTEMPTS):
        response = client.post("/api/auth/verify-otp", json={"email": "test@example.com", "otp": wrong})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid OTP"

    locked = client.post("/api/auth/verify-otp", json={"email": "test@example.com", "otp": sent_otps[-1]})
    assert locked.status_code == 400
    assert "Too many" in locked.json()["detail"]


def test_expired_otp_rejected(client, db_session, test_user, sent_otps):
    request_otp(client)
    record = db_session.query(models.PasswordResetOtp).one()
    record.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db_session.commit()

    response = client.post("/api/auth/verify-otp", json={"email": "test@example.com", "otp": sent_otps[-1]})

    assert response.status_code == 400
    assert "expired" in response.json()["detail"]


def test_reset_password_enforces_minimum_length(client, test_user):
    response = client.post(
        "/api/auth/reset-password",
        json={"email": "test@example.com", "resetToken": "whatever", "newPassword": "abc"}
    )
    assert response.status_code == 400
