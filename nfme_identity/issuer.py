from __future__ import annotations

import logging
from typing import Dict, Optional

from .abi import parse_ether
from .contract import Ownable, external, non_reentrant
from .crypto import to_address
from .errors import ResourceExhausted, StateConflict
from .token import SoulboundToken

log = logging.getLogger(__name__)

DEFAULT_IDENTIFIER = "nfme_mint_allowed"
MINT_PRICE = parse_ether("0.1")
MAX_SUPPLY = 10


class NFMe(SoulboundToken, Ownable):
    """Gated mint of a capped, non-transferable collectible.

    An Identity mints by calling `safeMint()` (through its `execute`) with at
    least `mint_price` attached. The Identity must hold a claim under
    `required_identifier` that passes the ClaimVerifier; each Identity mints
    at most once and no more than `max_supply` tokens are ever minted.
    """

    def __init__(
        self,
        claim_verifier: str,
        required_identifier: str = DEFAULT_IDENTIFIER,
        mint_price: int = MINT_PRICE,
        max_supply: int = MAX_SUPPLY,
        base_uri: str = "",
    ):
        self._init_token("NFMe", "NFME", base_uri)
        self._init_ownable(self.msg.sender)
        self._claim_verifier = to_address(claim_verifier)
        self._required_identifier = required_identifier
        self._mint_price = mint_price
        self._max_supply = max_supply
        self._minted_by: Dict[str, bool] = {}
        self._next_token_id = 0

    @external("safeMint()", "mint()", payable=True)
    @non_reentrant
    def safe_mint(self) -> int:
        identity = self.msg.sender
        self.require(self.msg.value >= self._mint_price, "Please send enough ether", ResourceExhausted)
        self.require(not self._minted_by.get(identity, False), "Already minted", StateConflict)
        self.require(self._next_token_id < self._max_supply, "We are already minted out", ResourceExhausted)
        self._static_call(self._claim_verifier, "verifyClaim(address,string)", identity, self._required_identifier)

        token_id = self._next_token_id
        self._minted_by[identity] = True
        self._next_token_id += 1
        self._safe_mint(identity, token_id)
        log.info("minted token %d to %s", token_id, identity)
        return token_id

    @external("withdraw(address)")
    def withdraw(self, recipient: str) -> int:
        self._only_owner()
        amount = self.balance
        self._call_raw(recipient, b"", amount)
        return amount

    @external("claimVerifier()", view=True)
    def claim_verifier(self) -> str:
        return self._claim_verifier

    @external("requiredIdentifier()", view=True)
    def required_identifier(self) -> str:
        return self._required_identifier

    @external("mintPrice()", view=True)
    def mint_price(self) -> int:
        return self._mint_price

    @external("maxSupply()", view=True)
    def max_supply(self) -> int:
        return self._max_supply

    @external("totalSupply()", view=True)
    def total_supply(self) -> int:
        return len(self._owners)

    @external("totalMinted()", view=True)
    def total_minted(self) -> int:
        return self._next_token_id

    @external("hasMinted(address)", view=True)
    def has_minted(self, identity: str) -> bool:
        return self._minted_by.get(identity, False)

    @external("trustedIssuer()", view=True)
    def trusted_issuer(self) -> Optional[str]:
        return self._static_call(self._claim_verifier, "trustedIssuer()")
