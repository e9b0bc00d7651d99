"""
nfme_identity.verification
--------------------------
The ordered claim checks shared by the on-ledger ClaimVerifier and the
off-chain tools (CLI, issuer service).

Checks always run in the same order and the first failure wins, so callers
get the most precise remediation: re-sign, wait for the validity window or
ask the issuer to lift a revocation.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from .crypto import recover_signer, signed_message_hash
from .models import Claim

CLAIM_NOT_AVAILABLE = "Required claim not available"
WRONG_ISSUER = "Wrong claim issuer"
WRONG_RECEIVER = "Wrong claim receiver"
INVALID_SIGNATURE = "Claim signature not valid"
NOT_YET_VALID = "Claim not yet valid"
NOT_VALID_ANYMORE = "Claim not valid anymore"
REVOKED = "Claim has been revoked"


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    reason: str


def claim_signer(claim: Claim) -> Optional[str]:
    return recover_signer(signed_message_hash(claim.digest()), claim.signature)


def iter_claim_checks(
    claim: Optional[Claim],
    *,
    trusted_issuer: str,
    subject: str,
    block_number: int,
    is_revoked: Callable[[str, str], bool] = lambda subject, identifier: False,
) -> Iterator[CheckResult]:
    """Yield each check in order, stopping after the first failure."""
    checks = [
        ("Claim present", lambda c: c is not None, CLAIM_NOT_AVAILABLE),
        ("Issuer", lambda c: c.issuer == trusted_issuer, WRONG_ISSUER),
        ("Receiver", lambda c: c.subject == subject, WRONG_RECEIVER),
        ("Signature", lambda c: claim_signer(c) == trusted_issuer, INVALID_SIGNATURE),
        ("Valid from", lambda c: c.valid_from == 0 or block_number >= c.valid_from, NOT_YET_VALID),
        ("Valid to", lambda c: c.valid_to == 0 or block_number <= c.valid_to, NOT_VALID_ANYMORE),
        ("Revocation", lambda c: not is_revoked(c.subject, c.identifier), REVOKED),
    ]
    for name, predicate, reason in checks:
        ok = bool(predicate(claim))
        yield CheckResult(name, ok, reason)
        if not ok:
            return


def check_claim(claim: Optional[Claim], **kwargs) -> Optional[str]:
    """Return the failure reason of the first failing check, or None if the claim passes."""
    for result in iter_claim_checks(claim, **kwargs):
        if not result.ok:
            return result.reason
    return None


def check_report(claim: Optional[Claim], **kwargs) -> List[CheckResult]:
    return list(iter_claim_checks(claim, **kwargs))
