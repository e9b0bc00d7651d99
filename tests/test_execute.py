import pytest

from nfme_identity.abi import encode_call, parse_ether
from nfme_identity.contract import Contract, external
from nfme_identity.errors import ResourceExhausted, Revert, StateConflict, Unauthorized
from nfme_identity.identity import OPERATION_CALL, OPERATION_CREATE, OPERATION_DELEGATECALL, OPERATION_STATICCALL

MINT_CALL = encode_call("safeMint()")


class Recorder(Contract):
    """Remembers who called it and with how much value."""

    def __init__(self):
        self.calls = []

    @external("record(string)", payable=True)
    def record(self, note):
        self.calls.append((self.msg.sender, self.msg.value, note))
        return len(self.calls)

    @external("fail(string)")
    def fail(self, reason):
        raise Revert(reason)


class Reenterer(Contract):
    def __init__(self, identity):
        self._identity = identity

    @external("poke()")
    def poke(self):
        return self._call(
            self._identity, "execute(uint256,address,uint256,bytes)", OPERATION_CALL, self.address, 0, b""
        )


@pytest.fixture
def recorder(chain, carol):
    return chain.deploy(carol, Recorder)


def test_identity_is_the_caller_and_pays(chain, identity, bob, recorder):
    receipt = identity.connect(bob).execute(
        OPERATION_CALL, recorder.address, parse_ether("0.25"), encode_call("record(string)", "hi")
    )
    assert receipt.return_value == 1
    assert recorder.calls == [(identity.address, parse_ether("0.25"), "hi")]
    assert chain.balance_of(recorder.address) == parse_ether("0.25")
    assert chain.balance_of(identity.address) == parse_ether("0.75")


def test_execute_can_pay_a_plain_account(chain, identity, bob, carol):
    before = chain.balance_of(carol.address)
    identity.connect(bob).execute(OPERATION_CALL, carol.address, parse_ether("0.5"), b"")
    assert chain.balance_of(carol.address) == before + parse_ether("0.5")


def test_attached_value_tops_up_the_identity(chain, identity, bob, recorder):
    identity.connect(bob).execute(
        OPERATION_CALL,
        recorder.address,
        parse_ether("1.5"),
        encode_call("record(string)", "topped up"),
        value=parse_ether("0.5"),
    )
    assert chain.balance_of(identity.address) == 0
    assert chain.balance_of(recorder.address) == parse_ether("1.5")


def test_insufficient_balance_reverts_without_side_effects(chain, identity, bob, recorder):
    with pytest.raises(ResourceExhausted, match="Insufficient balance for transfer"):
        identity.connect(bob).execute(
            OPERATION_CALL, recorder.address, parse_ether("2"), encode_call("record(string)", "x")
        )
    assert recorder.calls == []
    assert chain.balance_of(identity.address) == parse_ether("1")


def test_only_owners_can_execute(identity, carol, recorder):
    with pytest.raises(Unauthorized, match="Caller is not an owner"):
        identity.connect(carol).execute(OPERATION_CALL, recorder.address, 0, encode_call("record(string)", "x"))


@pytest.mark.parametrize("operation", [OPERATION_CREATE, 2, OPERATION_DELEGATECALL, 7])
def test_unsupported_operations_revert(identity, bob, recorder, operation):
    with pytest.raises(Revert, match="Unsupported operation type"):
        identity.connect(bob).execute(operation, recorder.address, 0, b"")


def test_target_failure_reason_bubbles_up(identity, bob, recorder):
    with pytest.raises(Revert, match="target said no"):
        identity.connect(bob).execute(OPERATION_CALL, recorder.address, 0, encode_call("fail(string)", "target said no"))


def test_unknown_selector_reverts(identity, bob, recorder):
    with pytest.raises(Revert, match="Function selector was not recognized"):
        identity.connect(bob).execute(OPERATION_CALL, recorder.address, 0, b"\x00\x00\x00\x00")


def test_value_to_non_payable_function_reverts(chain, identity, bob, recorder):
    with pytest.raises(Revert, match="Function is not payable"):
        identity.connect(bob).execute(
            OPERATION_CALL, recorder.address, 1, encode_call("fail(string)", "unused")
        )
    assert chain.balance_of(recorder.address) == 0


def test_static_call_reads_state(identity, bob, nfme):
    receipt = identity.connect(bob).execute(OPERATION_STATICCALL, nfme.address, 0, encode_call("maxSupply()"))
    assert receipt.return_value == 10


def test_static_call_cannot_change_state(identity, bob, nfme):
    with pytest.raises(Revert, match="State change during static call"):
        identity.connect(bob).execute(OPERATION_STATICCALL, nfme.address, 0, MINT_CALL)
    with pytest.raises(Revert, match="Static calls cannot transfer value"):
        identity.connect(bob).execute(OPERATION_STATICCALL, nfme.address, 1, encode_call("maxSupply()"))


def test_reentrant_execute_is_rejected(chain, identity, bob, carol):
    reenterer = chain.deploy(carol, Reenterer, identity.address)
    identity.connect(bob).add_owner(reenterer.address)
    with pytest.raises(StateConflict, match="ReentrancyGuard: reentrant call"):
        identity.connect(bob).execute(OPERATION_CALL, reenterer.address, 0, encode_call("poke()"))
    # The lock is released once the outer call finishes
    identity.connect(bob).execute(OPERATION_CALL, carol.address, 0, b"")


def test_identity_accepts_plain_transfers(chain, identity, carol):
    receipt = chain.send_value(carol, identity.address, parse_ether("2"))
    event = receipt.events_named("ValueReceived")[0]
    assert event.args == {"sender": carol.address, "value": parse_ether("2")}
    assert chain.balance_of(identity.address) == parse_ether("3")
