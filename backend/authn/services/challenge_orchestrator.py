"""Challenge orchestrator - the sign-in protocol flow.

Translates protocol requests into ordered Session, User and identity index
calls and delegates proof checking to the credential verifier.

Flows:
- New user: challenge -> register (credential attached, email sent) ->
  verify_link (user committed) -> check -> redeem
- Returning user: challenge -> authenticate -> check -> redeem

Cross-actor sequences are not transactional. Every step is either
idempotent (User writes, Session.verify) or guarded by the session state,
so a retried request converges instead of corrupting state.
"""

import secrets
from dataclasses import dataclass

import structlog

from authn.actors.system import ActorSystem
from authn.core.config import settings
from authn.core.email import build_verification_url
from authn.core.errors import (
    NotFoundError,
    OriginMismatchError,
    UnauthorizedError,
    ValidationError,
    VerificationFailedError,
)
from authn.providers.errors import VerificationFailed
from authn.providers.verifier.base import (
    CredentialVerifier,
    ExpectedAuthentication,
    ExpectedRegistration,
    rp_id_hash,
)
from authn.schemas.challenge import ChallengeResponse, CheckResult
from authn.schemas.credential import AuthenticationProof, RegistrationProof
from authn.schemas.identity import SessionInfo, UserInfo, VerifyState
from authn.services.identity_index import normalize_email

logger = structlog.get_logger()

# 256 bits of entropy; the session id doubles as the challenge nonce
_CHALLENGE_BYTES = 32

_UNKNOWN_CREDENTIAL_MSG = "Unknown credential"


@dataclass(frozen=True)
class PendingVerification:
    """A verification email to send after a registration.

    Attributes:
        email: Recipient address.
        verify_url: One-shot link back to GET /verify.
    """

    email: str
    verify_url: str


class ChallengeOrchestrator:
    """Stateless protocol router over the actor system."""

    def __init__(self, system: ActorSystem, verifier: CredentialVerifier) -> None:
        self._system = system
        self._verifier = verifier

    async def challenge(self, email: str, origin: str) -> ChallengeResponse:
        """Issue a fresh challenge bound to ``email`` and ``origin``.

        Args:
            email: Email address entered in the widget.
            origin: Origin of the requesting site.

        Returns:
            The challenge and the ids of the credentials the user may
            already hold for ``origin`` (empty for unknown emails).
        """
        email = normalize_email(email)
        user = await self._verified_user(email, origin)

        challenge = secrets.token_urlsafe(_CHALLENGE_BYTES)
        await self._system.session(challenge).init(
            email, origin, verify_hint=user is not None
        )

        credential_ids = [c.key.id for c in user.credentials] if user else []
        logger.info(
            "Challenge issued",
            origin=origin,
            known_user=user is not None,
            credentials=len(credential_ids),
        )
        return ChallengeResponse(challenge=challenge, credential_ids=credential_ids)

    async def register(
        self,
        origin: str,
        challenge: str,
        registration: RegistrationProof,
    ) -> PendingVerification | None:
        """Register a new credential for the session's email.

        A session that was already authenticated with an existing
        credential commits the new credential straight to its user.
        Otherwise the credential waits on the session until the email
        link is visited.

        Args:
            origin: Origin of the request.
            challenge: Session id returned by challenge().
            registration: Encoded registration proof.

        Returns:
            The verification email to send, or None when no email is due.

        Raises:
            NotFoundError: If the session does not exist.
            OriginMismatchError: If ``origin`` is not the session's origin.
            VerificationFailedError: If the proof is rejected (400).
        """
        session = self._system.session(challenge)
        info = await session.info()
        _require_origin(info, origin)

        try:
            verified = await self._verifier.verify_registration(
                registration,
                ExpectedRegistration(
                    challenge=lambda value: value == info.id,
                    origin=lambda value: value == info.origin,
                    rp_id_hash=lambda digest: digest == rp_id_hash(info.origin),
                ),
            )
        except VerificationFailed as exc:
            logger.info("Registration rejected", reason=str(exc))
            raise VerificationFailedError(str(exc), status_code=400) from exc

        if (
            info.verify_state is VerifyState.UNNECESSARY
            and info.authenticated_user_id is not None
        ):
            await self._system.user(info.authenticated_user_id).add_credential(
                info.origin, verified.credential
            )
            logger.info("Credential registered for authenticated session")
            return None

        transitioned = await session.attach_credential(verified.credential)
        if not transitioned:
            return None

        token = await self._system.index.issue_verification_token(
            info.id, settings.verification_token_ttl_seconds
        )
        logger.info("Credential pending email verification")
        return PendingVerification(
            email=info.email, verify_url=build_verification_url(token)
        )

    async def authenticate(
        self,
        origin: str,
        challenge: str,
        authentication: AuthenticationProof,
    ) -> None:
        """Sign in with a credential the user already registered.

        Args:
            origin: Origin of the request.
            challenge: Session id returned by challenge().
            authentication: Encoded assertion.

        Raises:
            NotFoundError: If the session does not exist.
            OriginMismatchError: If ``origin`` is not the session's origin.
            UnauthorizedError: If no verified user owns the email or the
                credential is not registered for this origin.
            VerificationFailedError: If the assertion is rejected (401).
        """
        session = self._system.session(challenge)
        info = await session.info()
        _require_origin(info, origin)

        user = await self._verified_user(info.email, info.origin)
        if user is None:
            raise UnauthorizedError(_UNKNOWN_CREDENTIAL_MSG)
        stored = user.find_credential(authentication.credential_id)
        if stored is None:
            raise UnauthorizedError(_UNKNOWN_CREDENTIAL_MSG)

        try:
            verified = await self._verifier.verify_authentication(
                authentication,
                stored,
                ExpectedAuthentication(
                    challenge=lambda value: value == info.id,
                    origin=lambda value: value == info.origin,
                    rp_id_hash=lambda digest: digest == rp_id_hash(info.origin),
                    user_verified=settings.require_user_verification,
                    counter=stored.sign_count,
                ),
            )
        except VerificationFailed as exc:
            logger.info("Authentication rejected", reason=str(exc))
            raise VerificationFailedError(str(exc), status_code=401) from exc

        await self._system.user(user.id).record_sign_count(
            info.origin, stored.key.id, verified.sign_count
        )
        await session.mark_authenticated(user.id)
        logger.info("Session authenticated", user_id=user.id)

    async def check(self, challenge: str) -> CheckResult:
        """Non-destructive poll: has the session been authenticated?"""
        try:
            info = await self._system.session(challenge).info()
        except NotFoundError:
            return CheckResult(authenticated=False)
        return CheckResult(authenticated=info.authenticated)

    async def redeem(self, challenge: str) -> CheckResult:
        """Hand out the session's identity exactly once.

        A session that is not authenticated yet is left alone so the
        sign-in can still complete. A missing or expired session yields
        ``authenticated=False`` and any residue is destroyed.
        """
        session = self._system.session(challenge)
        try:
            info = await session.info()
        except NotFoundError:
            await session.destroy()
            return CheckResult(authenticated=False)
        if not info.authenticated:
            return CheckResult(authenticated=False)

        try:
            info = await session.consume()
        except NotFoundError:
            return CheckResult(authenticated=False)

        logger.info("Session redeemed", user_id=info.authenticated_user_id)
        return CheckResult(
            authenticated=True,
            origin=info.origin,
            email=info.email,
            user=info.authenticated_user_id,
        )

    async def verify_link(self, token: str) -> SessionInfo:
        """Complete email verification for the session behind ``token``.

        The token is revoked before the session is touched, so a link works
        at most once even when it is opened twice at the same time.

        Raises:
            NotFoundError: If the token is unknown, expired or used, or its
                session can no longer be verified.
        """
        session_id = await self._system.index.redeem_verification_token(token)
        if session_id is None:
            raise NotFoundError("Verification link")

        try:
            return await self._system.session(session_id).verify()
        except (NotFoundError, ValidationError) as exc:
            logger.info("Verification link rejected", reason=exc.message)
            raise NotFoundError("Verification link") from exc

    async def _verified_user(self, email: str, origin: str) -> UserInfo | None:
        """User that owns ``email`` and has verified it, if any."""
        user_id = await self._system.index.find_user_id(email)
        if user_id is None:
            return None
        try:
            user = await self._system.user(user_id).info(origin)
        except NotFoundError:
            # Index entry written by a verification that never completed
            return None
        return user if user.is_verified(email) else None


def _require_origin(info: SessionInfo, origin: str) -> None:
    if origin != info.origin:
        logger.warning("Origin mismatch", expected=info.origin, got=origin)
        raise OriginMismatchError()
