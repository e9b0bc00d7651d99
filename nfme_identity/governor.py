from __future__ import annotations

from typing import Dict, List

from .contract import Contract, external
from .errors import ResourceExhausted, StateConflict, Unauthorized
from .ordered import OrderedKeySet

MAX_OWNERS = 10


class OwnerGovernor(Contract):
    """Owner membership of an Identity with quorum-confirmed removal.

    Any owner may add owners up to MAX_OWNERS (the seed owner included).
    Removing an owner needs removal proposals from a strict majority of the
    current owners (three of four, three of five); once that quorum exists
    anyone may finalise it.
    """

    def _init_governor(self, initial_owner: str) -> None:
        self._owners: OrderedKeySet[str] = OrderedKeySet()
        self._removal_proposals: Dict[str, List[str]] = {}
        self._owners.add(initial_owner)
        self._owner_changed(initial_owner, "added")

    def _only_owner(self) -> None:
        self.require(self.msg.sender in self._owners, "Caller is not an owner", Unauthorized)

    def removal_quorum(self) -> int:
        return len(self._owners) // 2 + 1

    def _owner_changed(self, candidate: str, action: str) -> None:
        self.emit("OwnershipChanged", candidate=candidate, actor=self.msg.sender, action=action)

    @external("addOwner(address)")
    def add_owner(self, candidate: str) -> None:
        self._only_owner()
        self.require(candidate not in self._owners, "Is already owner", StateConflict)
        self.require(len(self._owners) < MAX_OWNERS, "No more owners allowed", ResourceExhausted)
        self._owners.add(candidate)
        self._owner_changed(candidate, "added")

    @external("proposeOwnerRemoval(address)")
    def propose_owner_removal(self, candidate: str) -> None:
        self._only_owner()
        self.require(candidate in self._owners, "Only owners can be proposed for removal", StateConflict)
        proposers = self._removal_proposals.setdefault(candidate, [])
        self.require(
            self.msg.sender not in proposers,
            "You can't propose the same owner removal twice",
            StateConflict,
        )
        proposers.append(self.msg.sender)
        self._owner_changed(candidate, "removeProposal")

    @external("removeOwner(address)")
    def remove_owner(self, candidate: str) -> None:
        confirmations = self.confirmations(candidate)
        self.require(
            confirmations >= self.removal_quorum(),
            "At least 50% of owners need to confirm the removal",
            Unauthorized,
        )
        self.require(len(self._owners) > 1, "Can't remove the last owner", StateConflict)
        self._owners.remove(candidate)
        self._removal_proposals.pop(candidate, None)
        self._owner_changed(candidate, "removed")

    def confirmations(self, candidate: str) -> int:
        if candidate not in self._owners:
            return 0
        return sum(1 for p in self._removal_proposals.get(candidate, []) if p in self._owners)

    @external("owner()", view=True)
    def owner(self) -> str:
        return self._owners.to_list()[0]

    @external("getOwners()", view=True)
    def get_owners(self) -> List[str]:
        return self._owners.to_list()

    @external("ownersCount()", view=True)
    def owners_count(self) -> int:
        return len(self._owners)

    @external("isOwner(address)", view=True)
    def is_owner(self, account: str) -> bool:
        return account in self._owners

    @external("removalProposals(address)", view=True)
    def removal_proposals(self, candidate: str) -> List[str]:
        return list(self._removal_proposals.get(candidate, []))
