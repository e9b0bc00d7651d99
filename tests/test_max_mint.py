import pytest

from nfme_identity.abi import encode_call, parse_ether
from nfme_identity.attestation import claim_setter_args
from nfme_identity.errors import ResourceExhausted
from nfme_identity.identity import OPERATION_CALL
from nfme_identity.issuer import DEFAULT_IDENTIFIER, MINT_PRICE, NFMe


def deploy_identity_with_claim(chain, factory, alice, owner):
    receipt = factory.connect(owner).deploy_identity()
    identity = chain.contract_at(receipt.return_value)
    claim = alice.sign_claim(DEFAULT_IDENTIFIER, identity.address)
    identity.connect(owner).set_claim(*claim_setter_args(claim))
    return identity


def test_mint_stops_at_max_supply(chain, factory, nfme, alice, bob):
    identities = [deploy_identity_with_claim(chain, factory, alice, bob) for _ in range(11)]

    for token_id, identity in enumerate(identities[:10]):
        receipt = identity.connect(bob).mint(nfme.address, value=MINT_PRICE)
        assert receipt.return_value == token_id

    assert nfme.total_supply() == 10
    with pytest.raises(ResourceExhausted, match="We are already minted out"):
        identities[10].connect(bob).mint(nfme.address, value=MINT_PRICE)
    assert not nfme.has_minted(identities[10].address)
    assert chain.balance_of(nfme.address) == parse_ether("1")


def test_burning_does_not_free_supply(chain, factory, alice, bob, verifier):
    small = chain.deploy(alice, NFMe, verifier.address, DEFAULT_IDENTIFIER, MINT_PRICE, 1)
    first = deploy_identity_with_claim(chain, factory, alice, bob)
    second = deploy_identity_with_claim(chain, factory, alice, bob)

    first.connect(bob).mint(small.address, value=MINT_PRICE)
    first.connect(bob).execute(OPERATION_CALL, small.address, 0, encode_call("burn(uint256)", 0))
    assert small.total_supply() == 0
    assert small.total_minted() == 1
    with pytest.raises(ResourceExhausted, match="We are already minted out"):
        second.connect(bob).mint(small.address, value=MINT_PRICE)