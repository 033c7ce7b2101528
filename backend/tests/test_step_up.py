"""
Tests for the step-up verification state machine

Tests cover:
- Threshold entry condition (strictly greater than)
- OTP path including the failed -> awaiting_input retry loop
- Simulated biometric path
- Cancellation, the submission gate and stale-session purge
"""
from datetime import datetime, timedelta, timezone

import pytest

from halo.exceptions import VerificationRequiredError, VerificationSessionError
from halo.models.verification import VerificationMethod, VerificationState
from halo.services.step_up import StepUpVerificationService


def wrong_code(otp):
    return "000000" if otp != "000000" else "111111"


class TestEntry:
    """Which amounts require step-up"""

    @pytest.mark.parametrize("amount,required", [
        (99.99, False),
        (100, False),
        (100.01, True),
        (4500, True),
    ])
    def test_threshold_is_strict(self, step_up, amount, required):
        assert step_up.requires_step_up(amount) is required

    def test_below_threshold_is_verified_immediately(self, step_up):
        challenge = step_up.start_verification(50, VerificationMethod.OTP)

        assert challenge.step_up_required is False
        assert challenge.state == VerificationState.VERIFIED
        assert challenge.display_otp is None
        step_up.require_verified(challenge.session_token, 50)

    def test_unknown_token_is_idle(self, step_up):
        assert step_up.get_state("stepup_missing") == VerificationState.IDLE
        assert step_up.get_session("stepup_missing") is None


class TestOTP:
    """OTP method"""

    def test_start_awaits_input(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)

        assert challenge.step_up_required is True
        assert challenge.state == VerificationState.AWAITING_INPUT
        assert len(challenge.display_otp) == 6
        assert challenge.display_otp.isdigit()

    def test_otp_hidden_outside_demo_mode(self):
        service = StepUpVerificationService(threshold=100, demo_mode=False)
        challenge = service.start_verification(150, "otp")

        assert challenge.display_otp is None

    def test_correct_code_verifies(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)

        result = step_up.submit_otp(challenge.session_token, challenge.display_otp)

        assert result.verified is True
        assert result.state == VerificationState.VERIFIED
        assert result.attempts == 1
        step_up.require_verified(challenge.session_token, 150)

    def test_wrong_code_loops_back(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)
        token = challenge.session_token

        result = step_up.submit_otp(token, wrong_code(challenge.display_otp))

        assert result.verified is False
        assert result.state == VerificationState.FAILED
        assert result.error_code == "halo:verification:failed"
        assert step_up.get_state(token) == VerificationState.AWAITING_INPUT

        # retry with the same OTP succeeds
        result = step_up.submit_otp(token, challenge.display_otp)
        assert result.verified is True
        assert result.attempts == 2

    @pytest.mark.parametrize("code", ["١٢٣٤٥٦", "１２３４５６", "12345é", ""])
    def test_non_ascii_code_is_a_mismatch(self, step_up, code):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)

        result = step_up.submit_otp(challenge.session_token, code)

        assert result.state == VerificationState.FAILED
        assert step_up.get_state(challenge.session_token) == VerificationState.AWAITING_INPUT
        assert step_up.submit_otp(challenge.session_token, challenge.display_otp).verified is True

    def test_retry_loop_is_unbounded(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)
        bad = wrong_code(challenge.display_otp)

        for _ in range(10):
            assert step_up.submit_otp(challenge.session_token, bad).verified is False

        assert step_up.submit_otp(challenge.session_token, challenge.display_otp).verified is True

    def test_verified_is_terminal(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)
        step_up.submit_otp(challenge.session_token, challenge.display_otp)

        again = step_up.submit_otp(challenge.session_token, "garbage")

        assert again.verified is True
        assert step_up.get_state(challenge.session_token) == VerificationState.VERIFIED

    def test_biometric_session_rejects_otp(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.FACE_ID)

        with pytest.raises(VerificationSessionError):
            step_up.submit_otp(challenge.session_token, "123456")


class TestBiometric:
    """Simulated Face ID / Touch ID / fingerprint"""

    @pytest.mark.parametrize("method", [
        VerificationMethod.FACE_ID,
        VerificationMethod.TOUCH_ID,
        VerificationMethod.FINGERPRINT,
    ])
    def test_scan_always_verifies(self, step_up, method):
        challenge = step_up.start_verification(500, method)

        assert challenge.state == VerificationState.VERIFYING
        assert challenge.display_otp is None

        result = step_up.complete_biometric(challenge.session_token)

        assert result.verified is True
        assert result.state == VerificationState.VERIFIED

    def test_otp_session_rejects_biometric(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)

        with pytest.raises(VerificationSessionError):
            step_up.complete_biometric(challenge.session_token)


class TestCancelAndGate:
    """cancel() and require_verified()"""

    def test_cancel_discards_session(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)

        assert step_up.cancel(challenge.session_token) is True
        assert step_up.get_state(challenge.session_token) == VerificationState.IDLE
        assert step_up.cancel(challenge.session_token) is False

        with pytest.raises(VerificationSessionError):
            step_up.submit_otp(challenge.session_token, challenge.display_otp)

    def test_gate_rejects_pending_session(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.OTP)

        with pytest.raises(VerificationRequiredError) as exc_info:
            step_up.require_verified(challenge.session_token)

        assert exc_info.value.status_code == 403
        assert exc_info.value.details["state"] == "awaiting_input"

    def test_gate_rejects_missing_token(self, step_up):
        with pytest.raises(VerificationRequiredError):
            step_up.require_verified(None)

    def test_gate_rejects_larger_amount(self, step_up):
        challenge = step_up.start_verification(150, VerificationMethod.FACE_ID)
        step_up.complete_biometric(challenge.session_token)

        with pytest.raises(VerificationRequiredError):
            step_up.require_verified(challenge.session_token, 151)

    def test_forced_challenge_below_threshold(self, step_up):
        challenge = step_up.start_verification(40, VerificationMethod.OTP, force=True)

        assert challenge.step_up_required is True
        assert challenge.state == VerificationState.AWAITING_INPUT
        with pytest.raises(VerificationRequiredError):
            step_up.require_verified(challenge.session_token, 40, challenged=True)

        step_up.submit_otp(challenge.session_token, challenge.display_otp)
        step_up.require_verified(challenge.session_token, 40, challenged=True)

    def test_challenged_gate_rejects_auto_verified_session(self, step_up):
        challenge = step_up.start_verification(40, VerificationMethod.OTP)

        step_up.require_verified(challenge.session_token, 40)
        with pytest.raises(VerificationRequiredError) as exc_info:
            step_up.require_verified(challenge.session_token, 40, challenged=True)

        assert exc_info.value.details["state"] == "verified"


class TestPurge:
    """TTL-based cleanup"""

    def test_purge_stale(self):
        clock_time = [datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)]
        service = StepUpVerificationService(
            threshold=100, session_ttl_minutes=15, clock=lambda: clock_time[0]
        )
        old = service.start_verification(150, "otp")

        clock_time[0] += timedelta(minutes=10)
        fresh = service.start_verification(150, "otp")

        clock_time[0] += timedelta(minutes=6)
        assert service.purge_stale() == 1
        assert service.get_session(old.session_token) is None
        assert service.get_session(fresh.session_token) is not None

    def test_gate_rejects_expired_session(self):
        clock_time = [datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)]
        service = StepUpVerificationService(
            threshold=100, session_ttl_minutes=15, clock=lambda: clock_time[0]
        )
        challenge = service.start_verification(150, "face_id")
        service.complete_biometric(challenge.session_token)
        service.require_verified(challenge.session_token, 150)

        clock_time[0] += timedelta(minutes=16)

        with pytest.raises(VerificationRequiredError) as exc_info:
            service.require_verified(challenge.session_token, 150)

        assert exc_info.value.details["state"] == "expired"
        assert service.get_session(challenge.session_token) is None
