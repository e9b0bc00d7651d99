from __future__ import annotations

from typing import Dict, Optional, Tuple

from .contract import Ownable, external
from .crypto import claim_digest
from .errors import ClaimRejected
from .models import Claim
from .verification import check_claim


class ClaimVerifier(Ownable):
    """Verifies claims stored in Identity accounts and keeps the revocation registry.

    The verifier's owner is the trusted issuer: only claims signed by that
    account pass, and only that account may revoke (subject, identifier)
    pairs. Revocation blocks future verifications; it has no effect on
    anything a claim already unlocked.
    """

    def __init__(self, trusted_issuer: Optional[str] = None):
        self._revocations: Dict[Tuple[str, str], bool] = {}
        self._init_ownable(trusted_issuer or self.msg.sender)

    @external("trustedIssuer()", view=True)
    def trusted_issuer(self) -> str:
        return self._owner

    @external("addRevocation(address,string)")
    def add_revocation(self, subject: str, identifier: str) -> None:
        self._only_owner()
        self._revocations[(subject, identifier)] = True
        self.emit("RevocationChanged", subject=subject, identifier=identifier, revoked=True)

    @external("removeRevocation(address,string)")
    def remove_revocation(self, subject: str, identifier: str) -> None:
        self._only_owner()
        self._revocations.pop((subject, identifier), None)
        self.emit("RevocationChanged", subject=subject, identifier=identifier, revoked=False)

    @external("isRevoked(address,string)", view=True)
    def is_revoked(self, subject: str, identifier: str) -> bool:
        return self._revocations.get((subject, identifier), False)

    @external("claimDigest(string,address,address,bytes,uint256,uint256)", view=True)
    def claim_digest(
        self, identifier: str, issuer: str, subject: str, payload: bytes, valid_from: int, valid_to: int
    ) -> bytes:
        return claim_digest(identifier, issuer, subject, payload, valid_from, valid_to)

    @external("verifyClaim(address,string)", view=True)
    def verify_claim(self, identity: str, identifier: str) -> bool:
        """Read `identifier` back from `identity` and run every check, reverting on the first failure."""
        claim: Optional[Claim] = None
        if self._chain.is_contract(identity):
            claim = self._static_call(identity, "getClaim(string)", identifier)
        reason = check_claim(
            claim,
            trusted_issuer=self._owner,
            subject=identity,
            block_number=self.block_number,
            is_revoked=self.is_revoked,
        )
        self.require(reason is None, reason, ClaimRejected)
        return True
