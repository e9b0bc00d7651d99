"""
nfme_identity.chain
-------------------
A small deterministic ledger hosting the identity contracts.

- Accounts hold native-currency balances in wei; contracts live at
  addresses derived from their creator and the creator's nonce.
- Every transaction is mined into its own block (automine), so the block
  height seen by a transaction is `block_number + 1` at submission time.
- Message calls nest synchronously. Each call runs inside a snapshot: when
  it raises, balances, contract storage, created contracts and emitted
  events are restored before the error propagates.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .crypto import ZERO_ADDRESS, address_bytes, sha3, to_address
from .errors import ResourceExhausted, Revert
from .models import Event, Receipt

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    sender: str
    to: str
    value: int
    static: bool


class Chain:
    def __init__(self, block_number: int = 0):
        self.block_number = block_number
        self._balances: Dict[str, int] = {}
        self._contracts: Dict[str, Any] = {}
        self._nonces: Dict[str, int] = {}
        self._logs: List[Event] = []
        self._frames: List[Frame] = []
        self._tx_count = 0
        self.last_receipt: Optional[Receipt] = None
        # Serialises top-level entry points; message calls nest inside one holder
        self._lock = threading.RLock()

    # Accounts and blocks
    def fund(self, address: str, amount: int) -> None:
        """Credit an account outside of any transaction (genesis allocation)."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        address = to_address(address)
        with self._lock:
            self._ensure_idle()
            self._balances[address] = self._balances.get(address, 0) + amount

    def balance_of(self, address: str) -> int:
        return self._balances.get(to_address(address), 0)

    def is_contract(self, address: str) -> bool:
        return to_address(address) in self._contracts

    def contract_at(self, address: str) -> Any:
        try:
            return self._contracts[to_address(address)]
        except KeyError:
            raise ValueError(f"no contract at {address}") from None

    def mine(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("cannot mine a negative number of blocks")
        with self._lock:
            self.block_number += blocks
            return self.block_number

    @property
    def logs(self) -> List[Event]:
        return list(self._logs)

    def get_logs(self, address: str | None = None, name: str | None = None, from_index: int = 0) -> List[Event]:
        address = to_address(address) if address else None
        with self._lock:
            logs = self._logs[from_index:]
        return [
            e
            for e in logs
            if (address is None or e.address == address) and (name is None or e.name == name)
        ]

    # Transactions
    def deploy(self, sender: Any, contract_cls: type, *args: Any, value: int = 0) -> Any:
        """Deploy a contract in its own transaction and return the instance."""
        sender = _address_of(sender)
        receipt = self._transaction(sender, None, lambda: self.create(sender, contract_cls, args, value))
        receipt.contract_address = receipt.return_value.address
        return receipt.return_value

    def transact(self, sender: Any, to: str, data: bytes = b"", value: int = 0) -> Receipt:
        sender = _address_of(sender)
        to = to_address(to)

        def body():
            self._nonces[sender] = self._nonces.get(sender, 0) + 1
            return self.message_call(sender, to, data, value)

        return self._transaction(sender, to, body)

    def send_value(self, sender: Any, to: str, value: int) -> Receipt:
        return self.transact(sender, to, b"", value)

    def call(self, to: str, data: bytes, sender: Any = ZERO_ADDRESS) -> Any:
        """Run a read-only call against the current state, without mining."""
        with self._lock:
            self._ensure_idle()
            return self.message_call(_address_of(sender), to, data, 0, static=True)

    def _transaction(self, sender: str, to: Optional[str], body) -> Receipt:
        with self._lock:
            self._ensure_idle()
            self.mine()
            self._tx_count += 1
            tx_hash = "0x" + sha3(address_bytes(sender) + self._tx_count.to_bytes(8, "big")).hex()
            first_log = len(self._logs)
            try:
                result = body()
            except Revert as e:
                log.info("transaction %s from %s reverted: %s", tx_hash[:10], sender, e.reason)
                raise
            receipt = Receipt(
                tx_hash=tx_hash,
                block_number=self.block_number,
                sender=sender,
                to=to,
                return_value=result,
                events=self._logs[first_log:],
            )
            self.last_receipt = receipt
            log.debug("transaction %s mined in block %d with %d events", tx_hash[:10], self.block_number, len(receipt.events))
            return receipt

    # Execution, used by contracts while a transaction runs
    def current_frame(self, address: str) -> Frame:
        if not self._frames or self._frames[-1].to != address:
            raise RuntimeError(f"{address} is not executing a message call")
        return self._frames[-1]

    def message_call(self, sender: str, to: str, data: bytes, value: int = 0, static: bool = False) -> Any:
        to = to_address(to)
        static = static or bool(self._frames and self._frames[-1].static)
        if value < 0:
            raise Revert("Negative value")
        if static and value:
            raise Revert("Cannot send value in a static call")
        snapshot = self._snapshot()
        self._frames.append(Frame(sender, to, value, static))
        try:
            if value:
                self._move(sender, to, value)
            contract = self._contracts.get(to)
            result = contract._dispatch(bytes(data)) if contract is not None else None
        except Exception:
            self._restore(snapshot)
            raise
        finally:
            self._frames.pop()
        return result

    def create(self, creator: str, contract_cls: type, args: Tuple[Any, ...] = (), value: int = 0) -> Any:
        if self._frames and self._frames[-1].static:
            raise Revert("State change during static call")
        nonce = self._nonces.get(creator, 0)
        self._nonces[creator] = nonce + 1
        address = "0x" + sha3(address_bytes(creator) + nonce.to_bytes(8, "big"))[-20:].hex()
        snapshot = self._snapshot()
        self._frames.append(Frame(creator, address, value, False))
        try:
            if value:
                self._move(creator, address, value)
            contract = object.__new__(contract_cls)
            contract._chain = self
            contract.address = address
            self._contracts[address] = contract
            contract.__init__(*args)
        except Exception:
            self._restore(snapshot)
            raise
        finally:
            self._frames.pop()
        log.debug("created %s at %s", contract_cls.__name__, address)
        return contract

    def emit(self, address: str, name: str, args: Dict[str, Any]) -> None:
        if self._frames and self._frames[-1].static:
            raise Revert("State change during static call")
        self._logs.append(Event(address, name, dict(args), self.block_number, len(self._logs)))

    # Internal helpers
    def _move(self, sender: str, to: str, value: int) -> None:
        if self._balances.get(sender, 0) < value:
            raise ResourceExhausted("Insufficient balance for transfer")
        self._balances[sender] -= value
        self._balances[to] = self._balances.get(to, 0) + value

    def _snapshot(self):
        return (
            dict(self._balances),
            dict(self._contracts),
            {address: c._export_state() for address, c in self._contracts.items()},
            dict(self._nonces),
            len(self._logs),
        )

    def _restore(self, snapshot) -> None:
        balances, contracts, states, nonces, log_count = snapshot
        self._balances = balances
        self._contracts = contracts
        for address, state in states.items():
            contracts[address]._import_state(state)
        self._nonces = nonces
        del self._logs[log_count:]

    def _ensure_idle(self) -> None:
        if self._frames:
            raise RuntimeError("a transaction is already executing")


def _address_of(account: Any) -> str:
    return to_address(getattr(account, "address", account))
