import pytest

from nfme_identity.abi import (
    AbiError,
    decode_args,
    encode_call,
    format_ether,
    function_selector,
    parse_ether,
    parse_signature,
)


def test_parse_ether():
    assert parse_ether("0.1") == 10 ** 17
    assert parse_ether(1) == 10 ** 18
    assert format_ether(parse_ether("1.5")) == "1.5"
    with pytest.raises(AbiError):
        parse_ether("0.0000000000000000001")


def test_parse_signature():
    assert parse_signature("safeMint()") == ("safeMint", [])
    assert parse_signature("burn(uint256)") == ("burn", ["uint256"])
    with pytest.raises(AbiError):
        parse_signature("broken")
    with pytest.raises(AbiError):
        parse_signature("f(int8)")


def test_selector_is_four_bytes_and_signature_specific():
    assert len(function_selector("safeMint()")) == 4
    assert function_selector("safeMint()") != function_selector("mint()")


def test_encode_call_without_arguments_is_only_the_selector():
    assert encode_call("safeMint()") == function_selector("safeMint()")


def test_encode_decode_arguments():
    signature = "setClaim(string,address,address,bytes,uint256,uint256,bytes)"
    address = "0x" + "Aa" * 20
    data = encode_call(signature, "id", address, address, b"\x00\xff", 1, 2, b"")
    assert data[:4] == function_selector(signature)
    args = decode_args(parse_signature(signature)[1], data[4:])
    assert args == ["id", "0x" + "aa" * 20, "0x" + "aa" * 20, b"\x00\xff", 1, 2, b""]


def test_encode_rejects_wrong_types():
    with pytest.raises(AbiError):
        encode_call("burn(uint256)", -1)
    with pytest.raises(AbiError):
        encode_call("burn(uint256)", "1")
    with pytest.raises(AbiError):
        encode_call("burn(uint256)")


def test_decode_rejects_malformed_data():
    with pytest.raises(AbiError):
        decode_args(["uint256"], b"not json")
    with pytest.raises(AbiError):
        decode_args(["uint256"], b'["x"]')
    with pytest.raises(AbiError):
        decode_args([], b"[1]")


def test_decode_rejects_wrongly_typed_bytes():
    with pytest.raises(AbiError):
        decode_args(["bytes"], b"[1]")
    with pytest.raises(AbiError):
        decode_args(["bytes"], b'["0xzz"]')


def test_decode_rejects_oversized_uint256():
    with pytest.raises(AbiError):
        decode_args(["uint256"], f"[{1 << 256}]".encode())
    assert decode_args(["uint256"], f"[{(1 << 256) - 1}]".encode()) == [(1 << 256) - 1]
