"""
nfme_identity.abi
-----------------
Call data codec for message calls between ledger accounts.

Call data is a 4-byte function selector followed by the arguments encoded as
a compact JSON array. Each argument is converted according to the type named
in the function signature, so a malformed payload fails before any contract
code runs.

    encode_call("setClaim(string,address,address,bytes,uint256,uint256,bytes)", ...)
"""
from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, List, Sequence, Tuple

from .crypto import sha3, to_address
from .models import hex_decode, hex_encode

WEI_PER_ETHER = 10 ** 18
SUPPORTED_TYPES = {"address", "string", "bytes", "uint256", "bool"}


class AbiError(ValueError):
    pass


def parse_ether(value: str | int | Decimal) -> int:
    """Convert a decimal ether amount to integer wei."""
    wei = Decimal(str(value)) * WEI_PER_ETHER
    if wei != wei.to_integral_value():
        raise AbiError(f"too many decimals for ether amount: {value}")
    return int(wei)


def format_ether(wei: int) -> str:
    return format(Decimal(wei) / WEI_PER_ETHER, "f")


def parse_signature(signature: str) -> Tuple[str, List[str]]:
    name, sep, rest = signature.partition("(")
    if not sep or not rest.endswith(")") or not name:
        raise AbiError(f"invalid function signature: {signature!r}")
    inner = rest[:-1]
    types = [t for t in inner.split(",")] if inner else []
    for t in types:
        if t not in SUPPORTED_TYPES:
            raise AbiError(f"unsupported argument type {t!r} in {signature!r}")
    return name, types


def function_selector(signature: str) -> bytes:
    parse_signature(signature)
    return sha3(signature.encode())[:4]


def _encode_value(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return to_address(value)
    if abi_type == "string":
        if not isinstance(value, str):
            raise AbiError(f"expected string, got {type(value).__name__}")
        return value
    if abi_type == "bytes":
        if not isinstance(value, (bytes, bytearray)):
            raise AbiError(f"expected bytes, got {type(value).__name__}")
        return hex_encode(value)
    if abi_type == "uint256":
        if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value >= 1 << 256:
            raise AbiError(f"invalid uint256: {value!r}")
        return value
    if isinstance(value, bool):
        return value
    raise AbiError(f"expected bool, got {type(value).__name__}")


def _decode_value(abi_type: str, value: Any) -> Any:
    try:
        if abi_type == "address":
            return to_address(value)
        if abi_type == "string":
            if not isinstance(value, str):
                raise AbiError("expected string")
            return value
        if abi_type == "bytes":
            if not isinstance(value, str):
                raise AbiError("expected 0x hex string")
            return hex_decode(value)
        if abi_type == "uint256":
            if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value >= 1 << 256:
                raise AbiError("expected uint256")
            return value
        if not isinstance(value, bool):
            raise AbiError("expected bool")
        return value
    except (TypeError, ValueError) as e:
        raise AbiError(f"cannot decode {abi_type}: {e}") from e


def encode_args(types: Sequence[str], args: Sequence[Any]) -> bytes:
    if len(types) != len(args):
        raise AbiError(f"expected {len(types)} arguments, got {len(args)}")
    if not types:
        return b""
    encoded = [_encode_value(t, a) for t, a in zip(types, args)]
    return json.dumps(encoded, separators=(",", ":")).encode()


def decode_args(types: Sequence[str], data: bytes) -> List[Any]:
    if not types:
        if data:
            raise AbiError("unexpected arguments")
        return []
    try:
        raw = json.loads(data.decode())
    except (UnicodeDecodeError, ValueError) as e:
        raise AbiError(f"malformed call arguments: {e}") from e
    if not isinstance(raw, list) or len(raw) != len(types):
        raise AbiError(f"expected {len(types)} arguments")
    return [_decode_value(t, v) for t, v in zip(types, raw)]


def encode_call(signature: str, *args: Any) -> bytes:
    _, types = parse_signature(signature)
    return function_selector(signature) + encode_args(types, args)
