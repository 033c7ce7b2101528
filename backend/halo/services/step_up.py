"""
Step-Up Verification Service

OTP / simulated-biometric gate in front of high-value protocol submission.

State machine per session:

    idle -> awaiting_input -> verifying -> verified
                  ^                |
                  +---- failed <---+        (OTP mismatch, retry loop)

Biometric methods skip user input: start moves straight to verifying and
complete_biometric always verifies. Sessions live in process memory and
are discarded on cancel or once older than the configured TTL.
"""
import logging
import secrets
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from ..config import settings
from ..exceptions import VerificationRequiredError, VerificationSessionError
from ..models.verification import (
    VerificationChallenge,
    VerificationMethod,
    VerificationResult,
    VerificationState,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Session:
    token: str
    method: VerificationMethod
    amount: float
    state: VerificationState
    step_up_required: bool
    created_at: datetime
    otp: Optional[str] = None
    attempts: int = 0


class StepUpVerificationService:
    """
    In-process store of step-up sessions.

    Amounts strictly above the threshold require verification. Amounts at
    or below it get a session that is verified on creation so the
    submission gate can be applied uniformly, unless the caller forces a
    challenge after a risk review.
    """

    def __init__(
        self,
        threshold: Optional[float] = None,
        otp_length: Optional[int] = None,
        session_ttl_minutes: Optional[int] = None,
        demo_mode: Optional[bool] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.threshold = settings.step_up_threshold if threshold is None else threshold
        self.otp_length = otp_length or settings.otp_length
        self.session_ttl = timedelta(
            minutes=session_ttl_minutes or settings.verification_session_ttl_minutes
        )
        self.demo_mode = settings.demo_mode if demo_mode is None else demo_mode
        self._clock = clock
        self._sessions: Dict[str, _Session] = {}
        self._lock = threading.RLock()

    def requires_step_up(self, amount: float) -> bool:
        return amount > self.threshold

    def _generate_otp(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self.otp_length))

    def _transition(self, session: _Session, new_state: VerificationState) -> None:
        logger.debug(f"Step-up {session.token}: {session.state.value} -> {new_state.value}")
        session.state = new_state

    def _get(self, token: str) -> _Session:
        session = self._sessions.get(token)
        if session is None:
            raise VerificationSessionError(
                "Verification session not found or already closed",
                {"session_token": token}
            )
        return session

    def _result(self, session: _Session, state: VerificationState = None, **kwargs) -> VerificationResult:
        state = state or session.state
        return VerificationResult(
            session_token=session.token,
            method=session.method,
            state=state,
            verified=state == VerificationState.VERIFIED,
            attempts=session.attempts,
            **kwargs
        )

    def start_verification(
        self,
        amount: float,
        method: VerificationMethod = VerificationMethod.OTP,
        force: bool = False
    ) -> VerificationChallenge:
        """
        Open a verification session for a checkout amount.

        Args:
            amount: Checkout total in major units
            method: otp, face_id, touch_id or fingerprint
            force: Challenge even at or below the threshold (risk review)

        Returns:
            VerificationChallenge; display_otp is set only in demo mode
        """
        method = VerificationMethod(method)
        session = _Session(
            token=f"stepup_{uuid.uuid4().hex}",
            method=method,
            amount=amount,
            state=VerificationState.IDLE,
            step_up_required=force or self.requires_step_up(amount),
            created_at=self._clock(),
        )

        if not session.step_up_required:
            self._transition(session, VerificationState.VERIFIED)
        else:
            if method is VerificationMethod.OTP:
                session.otp = self._generate_otp()
            self._transition(session, VerificationState.AWAITING_INPUT)
            if method.is_biometric:
                # simulated scan starts immediately
                self._transition(session, VerificationState.VERIFYING)

        with self._lock:
            self._sessions[session.token] = session

        logger.info(
            f"Step-up session {session.token} started: method={method.value}, "
            f"amount={amount}, required={session.step_up_required}"
        )
        if session.otp and self.demo_mode:
            logger.info(f"[DEMO] Step-up OTP for {session.token}: {session.otp}")

        return VerificationChallenge(
            session_token=session.token,
            method=method,
            state=session.state,
            amount=amount,
            step_up_required=session.step_up_required,
            display_otp=session.otp if self.demo_mode else None,
            created_at=session.created_at,
        )

    def submit_otp(self, token: str, code: str) -> VerificationResult:
        """
        Check a submitted OTP.

        A mismatch passes through failed and returns the session to
        awaiting_input so the user can retry; the returned result reports
        the failure.

        Raises:
            VerificationSessionError: Unknown token, wrong method, or the
                session is not waiting for input
        """
        with self._lock:
            session = self._get(token)

            if session.method is not VerificationMethod.OTP:
                raise VerificationSessionError(
                    f"Session uses {session.method.value}, not OTP",
                    {"session_token": token}
                )
            if session.state == VerificationState.VERIFIED:
                return self._result(session, message="Already verified")
            if session.state != VerificationState.AWAITING_INPUT:
                raise VerificationSessionError(
                    f"Session is {session.state.value}, not awaiting input",
                    {"session_token": token}
                )

            self._transition(session, VerificationState.VERIFYING)
            session.attempts += 1

            # bytes compare: compare_digest rejects non-ASCII str
            submitted = str(code or "").encode("utf-8")
            if secrets.compare_digest(submitted, session.otp.encode("utf-8")):
                self._transition(session, VerificationState.VERIFIED)
                session.otp = None
                logger.info(f"Step-up session {token} verified by OTP")
                return self._result(session, message="Verification successful")

            self._transition(session, VerificationState.FAILED)
            self._transition(session, VerificationState.AWAITING_INPUT)
            logger.info(f"Step-up session {token}: OTP mismatch (attempt {session.attempts})")
            return self._result(
                session,
                state=VerificationState.FAILED,
                error_code="halo:verification:failed",
                message="Incorrect code, please try again",
            )

    def complete_biometric(self, token: str) -> VerificationResult:
        """
        Finish a simulated biometric scan. Always verifies.

        Raises:
            VerificationSessionError: Unknown token or an OTP session
        """
        with self._lock:
            session = self._get(token)

            if not session.method.is_biometric:
                raise VerificationSessionError(
                    "Session uses OTP, not biometric verification",
                    {"session_token": token}
                )
            if session.state != VerificationState.VERIFIED:
                self._transition(session, VerificationState.VERIFIED)
                session.attempts += 1
                logger.info(f"Step-up session {token} verified by {session.method.value}")

            return self._result(session, message="Verification successful")

    def cancel(self, token: str) -> bool:
        """Discard a session and its OTP. Returns False for unknown tokens."""
        with self._lock:
            session = self._sessions.pop(token, None)

        if session is None:
            return False

        self._transition(session, VerificationState.IDLE)
        session.otp = None
        logger.info(f"Step-up session {token} cancelled")
        return True

    def get_state(self, token: str) -> VerificationState:
        """Current state; idle for unknown or cancelled sessions."""
        session = self._sessions.get(token)
        return session.state if session else VerificationState.IDLE

    def get_session(self, token: str) -> Optional[VerificationResult]:
        session = self._sessions.get(token)
        return self._result(session, message=session.state.value) if session else None

    def require_verified(
        self,
        token: Optional[str],
        amount: Optional[float] = None,
        challenged: bool = False
    ) -> None:
        """
        Submission gate.

        Args:
            token: Session token presented with the checkout
            amount: Checkout amount; must not exceed the verified amount
            challenged: Reject sessions that were verified without an
                OTP or biometric challenge

        Raises:
            VerificationRequiredError: Missing, unverified, expired or
                under-covering session
        """
        with self._lock:
            session = self._sessions.get(token) if token else None
            if session is not None and self._clock() - session.created_at > self.session_ttl:
                del self._sessions[token]
                logger.info(f"Step-up session {token} expired at the submission gate")
                raise VerificationRequiredError(
                    "Step-up verification session has expired",
                    {"session_token": token, "state": "expired"}
                )

        if session is None or session.state != VerificationState.VERIFIED:
            raise VerificationRequiredError(
                "Step-up verification required before submission",
                {
                    "session_token": token,
                    "state": session.state.value if session else VerificationState.IDLE.value,
                }
            )

        if amount is not None and amount > session.amount:
            raise VerificationRequiredError(
                "Verified amount does not cover this checkout",
                {"session_token": token, "verified_amount": session.amount, "amount": amount}
            )

        if challenged and not session.step_up_required:
            raise VerificationRequiredError(
                "Checkout requires an OTP or biometric challenge",
                {"session_token": token, "state": session.state.value}
            )

    def purge_stale(self, now: Optional[datetime] = None) -> int:
        """Drop sessions older than the TTL. Returns the number removed."""
        cutoff = (now or self._clock()) - self.session_ttl

        with self._lock:
            stale = [t for t, s in self._sessions.items() if s.created_at < cutoff]
            for token in stale:
                del self._sessions[token]

        if stale:
            logger.info(f"Purged {len(stale)} stale step-up session(s)")
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)
