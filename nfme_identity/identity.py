from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .abi import encode_call
from .contract import external, non_reentrant
from .crypto import to_address
from .errors import Revert, StateConflict, Unauthorized
from .governor import OwnerGovernor
from .models import Claim
from .ordered import OrderedKeySet
from .token import ERC721_RECEIVED

log = logging.getLogger(__name__)

OPERATION_CALL = 0
OPERATION_CREATE = 1
OPERATION_CREATE2 = 2
OPERATION_STATICCALL = 3
OPERATION_DELEGATECALL = 4

RELAY_SIGNATURE = "relayOwnerAction(address,address,address,string)"


class Identity(OwnerGovernor):
    """A user-controlled account holding owners, claims and a balance.

    Owners store claims issued to the Identity and use `execute` to make the
    Identity itself the caller of other contracts. Claims are stored as-is;
    whoever consumes a claim verifies it at the time of use.
    """

    def __init__(self, initial_owner: Optional[str] = None, factory: Optional[str] = None):
        self._factory: Optional[str] = None
        self._claims: Dict[str, Claim] = {}
        self._claim_ids: OrderedKeySet[str] = OrderedKeySet()
        self._init_governor(to_address(initial_owner) if initial_owner else self.msg.sender)
        if factory:
            factory = to_address(factory)
            # Only the factory itself may bind an identity to its relay channel
            self.require(self.msg.sender == factory, "Identity must be deployed by its factory", Unauthorized)
            self._factory = factory

    def _owner_changed(self, candidate: str, action: str) -> None:
        super()._owner_changed(candidate, action)
        if self._factory is not None:
            self._call(self._factory, RELAY_SIGNATURE, self.address, candidate, self.msg.sender, action)

    @external("factory()", view=True)
    def factory(self) -> Optional[str]:
        return self._factory

    # Claim store
    @external("setClaim(string,address,address,bytes,uint256,uint256,bytes)")
    def set_claim(
        self,
        identifier: str,
        issuer: str,
        subject: str,
        payload: bytes,
        valid_from: int,
        valid_to: int,
        signature: bytes,
    ) -> None:
        self._only_owner()
        self._claims[identifier] = Claim(identifier, issuer, subject, payload, valid_from, valid_to, signature)
        self._claim_ids.add(identifier)
        self.emit("ClaimChanged", identifier=identifier, actor=self.msg.sender, action="added")

    @external("removeClaim(string)")
    def remove_claim(self, identifier: str) -> None:
        self._only_owner()
        self.require(identifier in self._claims, "No such claim", StateConflict)
        del self._claims[identifier]
        self._claim_ids.remove(identifier)
        self.emit("ClaimChanged", identifier=identifier, actor=self.msg.sender, action="removed")

    @external("getClaim(string)", view=True)
    def get_claim(self, identifier: str) -> Optional[Claim]:
        return self._claims.get(identifier)

    @external("listClaimIdentifiers()", view=True)
    def list_claim_identifiers(self) -> List[str]:
        return self._claim_ids.to_list()

    # Action router
    @external("execute(uint256,address,uint256,bytes)", payable=True)
    @non_reentrant
    def execute(self, operation_type: int, target: str, value: int, data: bytes) -> Any:
        self._only_owner()
        if operation_type == OPERATION_CALL:
            log.debug("identity %s forwarding call to %s with value %d", self.address, target, value)
            return self._call_raw(target, data, value)
        if operation_type == OPERATION_STATICCALL:
            self.require(value == 0, "Static calls cannot transfer value")
            return self._call_raw(target, data, static=True)
        raise Revert("Unsupported operation type")

    @external("mint(address)", payable=True)
    @non_reentrant
    def mint(self, issuer: str) -> Any:
        self._only_owner()
        return self._call_raw(issuer, encode_call("safeMint()"), self.msg.value)

    @external("receive()", payable=True)
    def receive(self) -> None:
        self.emit("ValueReceived", sender=self.msg.sender, value=self.msg.value)

    @external("onERC721Received(address,address,uint256,bytes)", view=True)
    def on_erc721_received(self, operator: str, sender: str, token_id: int, data: bytes) -> bytes:
        return ERC721_RECEIVED
