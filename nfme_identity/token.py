from __future__ import annotations

from typing import Dict

from .abi import function_selector
from .contract import Contract, external
from .crypto import ZERO_ADDRESS
from .errors import StateConflict, Unauthorized

TRANSFER_NOT_ALLOWED = "Transferring NFT is not allowed"
ERC721_RECEIVED = function_selector("onERC721Received(address,address,uint256,bytes)")


class SoulboundToken(Contract):
    """Minimal non-fungible ledger whose tokens cannot change hands.

    Holders may burn their own tokens; every transfer entry point reverts.
    """

    def _init_token(self, name: str, symbol: str, base_uri: str = "") -> None:
        self._name = name
        self._symbol = symbol
        self._base_uri = base_uri
        self._owners: Dict[int, str] = {}
        self._balances: Dict[str, int] = {}

    @external("name()", view=True)
    def name(self) -> str:
        return self._name

    @external("symbol()", view=True)
    def symbol(self) -> str:
        return self._symbol

    @external("balanceOf(address)", view=True)
    def balance_of(self, holder: str) -> int:
        self.require(holder != ZERO_ADDRESS, "ERC721: address zero is not a valid owner")
        return self._balances.get(holder, 0)

    @external("ownerOf(uint256)", view=True)
    def owner_of(self, token_id: int) -> str:
        holder = self._owners.get(token_id)
        self.require(holder is not None, "ERC721: invalid token ID", StateConflict)
        return holder

    @external("tokenURI(uint256)", view=True)
    def token_uri(self, token_id: int) -> str:
        self.owner_of(token_id)
        return f"{self._base_uri}{token_id}" if self._base_uri else ""

    @external("transferFrom(address,address,uint256)")
    def transfer_from(self, sender: str, recipient: str, token_id: int) -> None:
        self.require(False, TRANSFER_NOT_ALLOWED, Unauthorized)

    @external(
        "safeTransferFrom(address,address,uint256)",
        "safeTransferFrom(address,address,uint256,bytes)",
    )
    def safe_transfer_from(self, sender: str, recipient: str, token_id: int, data: bytes = b"") -> None:
        self.require(False, TRANSFER_NOT_ALLOWED, Unauthorized)

    @external("burn(uint256)")
    def burn(self, token_id: int) -> None:
        holder = self.owner_of(token_id)
        self.require(self.msg.sender == holder, "ERC721: caller is not token owner", Unauthorized)
        del self._owners[token_id]
        self._balances[holder] -= 1
        self.emit("Transfer", sender=holder, recipient=ZERO_ADDRESS, tokenId=token_id)

    def _safe_mint(self, recipient: str, token_id: int) -> None:
        self.require(recipient != ZERO_ADDRESS, "ERC721: mint to the zero address")
        self.require(token_id not in self._owners, "ERC721: token already minted", StateConflict)
        self._owners[token_id] = recipient
        self._balances[recipient] = self._balances.get(recipient, 0) + 1
        self.emit("Transfer", sender=ZERO_ADDRESS, recipient=recipient, tokenId=token_id)
        if self._chain.is_contract(recipient):
            answer = self._call(
                recipient,
                "onERC721Received(address,address,uint256,bytes)",
                self.msg.sender,
                ZERO_ADDRESS,
                token_id,
                b"",
            )
            self.require(answer == ERC721_RECEIVED, "ERC721: transfer to non ERC721Receiver implementer")
