from __future__ import annotations

from typing import List

from .contract import Contract, external
from .errors import Unauthorized
from .identity import Identity
from .ordered import OrderedKeySet


class IdentityFactory(Contract):
    """Deploys Identity accounts and republishes their ownership changes.

    Observers subscribe to the factory's `OwnerActionRelayed` events instead
    of watching every Identity separately.
    """

    def __init__(self):
        self._identities: OrderedKeySet[str] = OrderedKeySet()

    @external("deployIdentity()")
    def deploy_identity(self) -> str:
        owner = self.msg.sender
        identity = self._create(Identity, owner, self.address)
        self._identities.add(identity.address)
        # Argument order is (owner, identity); indexers read the owner as the first argument
        self.emit("IdentityDeployed", owner=owner, identity=identity.address)
        return identity.address

    @external("relayOwnerAction(address,address,address,string)")
    def relay_owner_action(self, identity: str, owner: str, actor: str, action: str) -> None:
        self.require(self.msg.sender in self._identities, "Caller is not a known identity", Unauthorized)
        self.require(identity == self.msg.sender, "Identity can only relay its own actions", Unauthorized)
        self.emit("OwnerActionRelayed", identity=identity, owner=owner, actor=actor, action=action)

    @external("isIdentity(address)", view=True)
    def is_identity(self, account: str) -> bool:
        return account in self._identities

    @external("identitiesCount()", view=True)
    def identities_count(self) -> int:
        return len(self._identities)

    @external("getIdentities()", view=True)
    def get_identities(self) -> List[str]:
        return self._identities.to_list()
