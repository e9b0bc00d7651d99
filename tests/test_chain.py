from concurrent.futures import ThreadPoolExecutor

import pytest

from nfme_identity.abi import encode_call, parse_ether
from nfme_identity.chain import Chain
from nfme_identity.crypto import KeyPair
from nfme_identity.errors import ResourceExhausted


def test_each_transaction_mines_a_block(chain, bob, carol):
    start = chain.block_number
    receipt = chain.send_value(bob, carol.address, 1)
    assert receipt.block_number == start + 1
    assert chain.mine(5) == start + 6


def test_failed_transfer_restores_balances(chain, bob, carol):
    with pytest.raises(ResourceExhausted, match="Insufficient balance for transfer"):
        chain.send_value(bob, carol.address, parse_ether("1000"))
    assert chain.balance_of(bob.address) == parse_ether("100")


def test_concurrent_callers_are_serialised(chain, nfme, carol):
    payer = KeyPair.from_seed("payer")
    chain.fund(payer.address, 10_000)
    max_supply = encode_call("maxSupply()")

    def reader(_):
        return [chain.call(nfme.address, max_supply) for _ in range(200)]

    def writer(_):
        for _ in range(50):
            chain.send_value(payer, carol.address, 1)
        return chain.balance_of(payer.address)

    with ThreadPoolExecutor(max_workers=8) as pool:
        reads = [pool.submit(reader, i) for i in range(6)]
        writes = [pool.submit(writer, i) for i in range(2)]
        results = [f.result() for f in reads]
        for f in writes:
            f.result()

    assert all(values == [10] * 200 for values in results)
    assert chain.balance_of(payer.address) == 10_000 - 100


def test_fund_rejects_negative_amounts():
    with pytest.raises(ValueError):
        Chain().fund("0x" + "11" * 20, -1)
