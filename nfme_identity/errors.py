from __future__ import annotations


class Revert(Exception):
    """A ledger call failed; all of its state changes are rolled back.

    `reason` is the exact failure string surfaced to callers and tooling.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class Unauthorized(Revert):
    """Caller is not an owner, not the trusted issuer, or quorum is missing."""


class ClaimRejected(Revert):
    """One of the claim verification checks failed."""


class ResourceExhausted(Revert):
    """Supply cap, owner cap, balance or payment is insufficient."""


class StateConflict(Revert):
    """Double mint, double proposal, unknown key and similar caller mistakes."""
