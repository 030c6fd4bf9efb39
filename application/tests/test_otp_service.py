import pytest

from app.core.exceptions import DeliveryFailed, OTPExpired, OTPMismatch, OTPNotFound, ValidationError
from app.services import otp_service as otp_service_module
from app.services.otp_service import OTPService
from app.services.otp_store import InMemoryOTPStore


def test_generated_otp_is_six_digits_in_range(otp_service):
    for _ in range(200):
        code = otp_service.generate_otp()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_issue_sends_code_by_email(otp_service, notifier):
    code = otp_service.issue("u@x.com")

    assert len(notifier.sent) == 1
    assert notifier.sent[0]["to"] == "u@x.com"
    assert notifier.sent[0]["subject"] == "Your OTP Code"
    assert notifier.last_code() == code
    assert "Valid for 5 minutes." in notifier.sent[0]["html"]


def test_issue_requires_email(otp_service):
    with pytest.raises(ValidationError) as exc:
        otp_service.issue("")
    assert exc.value.message == "Email is required"


def test_verify_succeeds_exactly_once(otp_service, monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "482913")
    otp_service.issue("u@x.com")

    assert otp_service.verify("u@x.com", "482913")
    with pytest.raises(OTPNotFound):
        otp_service.verify("u@x.com", "482913")


def test_verify_returns_email_verification_token(otp_service, token_issuer):
    code = otp_service.issue("User@X.com")
    token = otp_service.verify("user@x.com", code)
    assert token_issuer.decode_email_verification(token) == "user@x.com"


def test_wrong_code_keeps_original_valid(otp_service, clock):
    code = otp_service.issue("u@x.com")
    wrong = "100000" if code != "100000" else "100001"

    for _ in range(5):
        with pytest.raises(OTPMismatch):
            otp_service.verify("u@x.com", wrong)
    clock.advance(299)

    assert otp_service.verify("u@x.com", code)


def test_expired_code_is_rejected_and_removed(otp_service, otp_store, clock):
    code = otp_service.issue("u@x.com")
    clock.advance(301)

    with pytest.raises(OTPExpired):
        otp_service.verify("u@x.com", code)
    assert otp_store.get("u@x.com") is None
    with pytest.raises(OTPNotFound):
        otp_service.verify("u@x.com", code)


def test_code_still_valid_at_exact_expiry(otp_service, clock):
    code = otp_service.issue("u@x.com")
    clock.advance(300)
    assert otp_service.verify("u@x.com", code)


def test_verify_without_issue_is_not_found(otp_service):
    with pytest.raises(OTPNotFound):
        otp_service.verify("nobody@x.com", "123456")


def test_reissue_invalidates_previous_code(otp_service, monkeypatch):
    codes = iter(["111111", "222222"])
    monkeypatch.setattr(otp_service, "generate_otp", lambda: next(codes))
    otp_service.issue("u@x.com")
    otp_service.issue("u@x.com")

    with pytest.raises(OTPMismatch):
        otp_service.verify("u@x.com", "111111")
    assert otp_service.verify("u@x.com", "222222")


def test_record_is_kept_when_delivery_fails(otp_service, notifier, otp_store, monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "654321")
    notifier.fail = True

    with pytest.raises(DeliveryFailed):
        otp_service.issue("u@x.com")

    assert otp_store.get("u@x.com") is not None
    assert otp_service.verify("u@x.com", "654321")


def test_store_never_holds_plaintext_code(otp_service, otp_store, monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "482913")
    otp_service.issue("u@x.com")
    record = otp_store.get("u@x.com")
    assert record.otp_hash != "482913"
    assert record.otp_hash == otp_service.hash_otp("482913")


def test_max_attempts_drops_the_code(notifier, token_issuer, clock):
    service = OTPService(InMemoryOTPStore(), notifier, token_issuer, max_attempts=3, clock=clock)
    code = service.issue("u@x.com")
    wrong = "100000" if code != "100000" else "100001"

    for _ in range(3):
        with pytest.raises(OTPMismatch):
            service.verify("u@x.com", wrong)
    with pytest.raises(OTPNotFound):
        service.verify("u@x.com", code)


def test_reap_removes_only_expired_records(otp_service, otp_store, clock):
    otp_service.issue("old@x.com")
    clock.advance(200)
    otp_service.issue("new@x.com")
    clock.advance(150)

    assert otp_service.reap() == 1
    assert otp_store.get("old@x.com") is None
    assert otp_store.get("new@x.com") is not None


def test_code_with_surrounding_whitespace_is_a_mismatch(otp_service, monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "482913")
    otp_service.issue("u@x.com")

    with pytest.raises(OTPMismatch):
        otp_service.verify("u@x.com", " 482913 ")
    assert otp_service.verify("u@x.com", "482913")


def test_mismatch_log_reports_attempts_only_when_counted(notifier, token_issuer, clock, monkeypatch):
    messages = []
    monkeypatch.setattr(otp_service_module.logger, "warning", lambda msg, *args, **kwargs: messages.append(msg))

    unlimited = OTPService(InMemoryOTPStore(), notifier, token_issuer, clock=clock)
    code = unlimited.issue("u@x.com")
    wrong = "100000" if code != "100000" else "100001"
    for _ in range(2):
        with pytest.raises(OTPMismatch):
            unlimited.verify("u@x.com", wrong)
    assert messages == ["otp_verify_failed | email=u@x.com reason=mismatch"] * 2

    messages.clear()
    limited = OTPService(InMemoryOTPStore(), notifier, token_issuer, max_attempts=5, clock=clock)
    code = limited.issue("u@x.com")
    wrong = "100000" if code != "100000" else "100001"
    for _ in range(2):
        with pytest.raises(OTPMismatch):
            limited.verify("u@x.com", wrong)
    assert messages == [
        "otp_verify_failed | email=u@x.com reason=mismatch attempts=1",
        "otp_verify_failed | email=u@x.com reason=mismatch attempts=2",
    ]
