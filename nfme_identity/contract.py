from __future__ import annotations

import copy
import functools
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

from .abi import AbiError, decode_args, encode_call, function_selector, parse_signature
from .crypto import ZERO_ADDRESS, to_address
from .errors import Revert, StateConflict, Unauthorized


@dataclass(frozen=True)
class ExternalFunction:
    signature: str
    attr: str
    types: Tuple[str, ...]
    payable: bool
    view: bool


def external(*signatures: str, payable: bool = False, view: bool = False):
    """Expose a contract method to message calls under one or more signatures."""

    def decorate(fn: Callable) -> Callable:
        fn.__external__ = (signatures, payable, view)
        return fn

    return decorate


def non_reentrant(fn: Callable) -> Callable:
    @functools.wraps(fn)
    def wrapper(self: "Contract", *args, **kwargs):
        self.require(not getattr(self, "_entered", False), "ReentrancyGuard: reentrant call", StateConflict)
        self._entered = True
        try:
            return fn(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper


class Contract:
    """Base class of ledger contracts.

    Instances are created by `Chain.create`, which binds `_chain` and
    `address` before running the subclass `__init__` as the constructor.
    Every attribute except `_chain` is contract storage and is rolled back
    when a call fails.
    """

    _chain: Any
    address: str
    _selectors: Dict[bytes, ExternalFunction] = {}
    _functions: Dict[str, ExternalFunction] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        selectors: Dict[bytes, ExternalFunction] = {}
        functions: Dict[str, ExternalFunction] = {}
        for klass in reversed(cls.__mro__):
            for attr, member in vars(klass).items():
                meta = getattr(member, "__external__", None)
                if meta is None:
                    continue
                signatures, payable, view = meta
                for i, signature in enumerate(signatures):
                    _, types = parse_signature(signature)
                    fn = ExternalFunction(signature, attr, tuple(types), payable, view)
                    selectors[function_selector(signature)] = fn
                    if i == 0:
                        functions[attr] = fn
        cls._selectors = selectors
        cls._functions = functions

    # Execution context
    @property
    def msg(self):
        return self._chain.current_frame(self.address)

    @property
    def block_number(self) -> int:
        return self._chain.block_number

    @property
    def balance(self) -> int:
        return self._chain.balance_of(self.address)

    def require(self, condition: Any, reason: str, error: type = Revert) -> None:
        if not condition:
            raise error(reason)

    def emit(self, name: str, **args: Any) -> None:
        self._chain.emit(self.address, name, args)

    # Outgoing calls
    def _call(self, target: str, signature: str, *args: Any, value: int = 0) -> Any:
        return self._chain.message_call(self.address, target, encode_call(signature, *args), value)

    def _static_call(self, target: str, signature: str, *args: Any) -> Any:
        return self._chain.message_call(self.address, target, encode_call(signature, *args), 0, static=True)

    def _call_raw(self, target: str, data: bytes, value: int = 0, static: bool = False) -> Any:
        return self._chain.message_call(self.address, target, data, value, static=static)

    def _create(self, contract_cls: type, *args: Any, value: int = 0) -> "Contract":
        return self._chain.create(self.address, contract_cls, args, value)

    # Incoming calls
    def _dispatch(self, data: bytes) -> Any:
        frame = self.msg
        if not data:
            receive = getattr(self, "receive", None)
            self.require(receive is not None, "Contract does not accept plain transfers")
            return receive()
        fn = self._selectors.get(bytes(data[:4]))
        self.require(fn is not None, "Function selector was not recognized")
        self.require(fn.payable or not frame.value, "Function is not payable")
        self.require(fn.view or not frame.static, "State change during static call")
        try:
            args = decode_args(fn.types, bytes(data[4:]))
        except AbiError as e:
            raise Revert(f"Malformed call data: {e}") from e
        return getattr(self, fn.attr)(*args)

    def _export_state(self) -> Dict[str, Any]:
        return copy.deepcopy({k: v for k, v in vars(self).items() if k != "_chain"})

    def _import_state(self, state: Dict[str, Any]) -> None:
        chain = self._chain
        self.__dict__.clear()
        self.__dict__.update(state)
        self._chain = chain

    def connect(self, sender: Any) -> "ContractHandle":
        return ContractHandle(self, sender)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"


class ContractHandle:
    """A contract bound to a sending account.

    Attribute access returns a callable for the named external function:
    views run as static calls, everything else is sent as a transaction and
    returns its Receipt. Payable functions take a `value=` keyword.
    """

    def __init__(self, contract: Contract, sender: Any):
        self._contract = contract
        self._sender = to_address(getattr(sender, "address", sender))

    def __getattr__(self, name: str):
        fn = type(self._contract)._functions.get(name)
        if fn is None:
            raise AttributeError(f"{type(self._contract).__name__} has no external function {name!r}")
        chain = self._contract._chain
        target = self._contract.address

        def send(*args: Any, value: int = 0):
            data = encode_call(fn.signature, *args)
            if fn.view:
                return chain.call(target, data, sender=self._sender)
            return chain.transact(self._sender, target, data, value=value)

        send.__name__ = name
        return send


class Ownable(Contract):
    """Single-owner access control for contracts administered by one account."""

    def _init_ownable(self, owner: str) -> None:
        self._owner = to_address(owner)
        self.emit("OwnershipTransferred", previousOwner=ZERO_ADDRESS, newOwner=self._owner)

    def _only_owner(self) -> None:
        self.require(self.msg.sender == self._owner, "caller is not the owner", Unauthorized)

    @external("owner()", view=True)
    def owner(self) -> str:
        return self._owner

    @external("transferOwnership(address)")
    def transfer_ownership(self, new_owner: str) -> None:
        self._only_owner()
        self.require(new_owner != ZERO_ADDRESS, "new owner is the zero address")
        previous, self._owner = self._owner, new_owner
        self.emit("OwnershipTransferred", previousOwner=previous, newOwner=new_owner)
