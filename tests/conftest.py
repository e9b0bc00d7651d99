import pytest

from nfme_identity.abi import encode_call, parse_ether
from nfme_identity.attestation import ClaimIssuer, claim_setter_args
from nfme_identity.chain import Chain
from nfme_identity.crypto import KeyPair
from nfme_identity.factory import IdentityFactory
from nfme_identity.identity import OPERATION_CALL, Identity
from nfme_identity.issuer import DEFAULT_IDENTIFIER, NFMe
from nfme_identity.verifier import ClaimVerifier

MINT_CALL = encode_call("safeMint()")


@pytest.fixture
def chain():
    return Chain()


@pytest.fixture
def alice(chain):
    # Alice is the attestation issuer and owns the ClaimVerifier
    issuer = ClaimIssuer(seed=b"alice", name="Alice")
    chain.fund(issuer.address, parse_ether("100"))
    return issuer


@pytest.fixture
def bob(chain):
    key = KeyPair.from_seed("bob")
    chain.fund(key.address, parse_ether("100"))
    return key


@pytest.fixture
def carol(chain):
    key = KeyPair.from_seed("carol")
    chain.fund(key.address, parse_ether("100"))
    return key


@pytest.fixture
def dave(chain):
    key = KeyPair.from_seed("dave")
    chain.fund(key.address, parse_ether("100"))
    return key


@pytest.fixture
def verifier(chain, alice):
    return chain.deploy(alice, ClaimVerifier)


@pytest.fixture
def nfme(chain, alice, verifier):
    return chain.deploy(alice, NFMe, verifier.address)


@pytest.fixture
def factory(chain, alice):
    return chain.deploy(alice, IdentityFactory)


@pytest.fixture
def identity(chain, bob):
    # Bob deploys his Identity and funds it with 1 ether
    identity = chain.deploy(bob, Identity)
    chain.send_value(bob, identity.address, parse_ether("1"))
    return identity


@pytest.fixture
def mint_claim(alice, identity):
    return alice.sign_claim(DEFAULT_IDENTIFIER, identity.address)


@pytest.fixture
def store_claim():
    def store(identity, owner, claim):
        return identity.connect(owner).set_claim(*claim_setter_args(claim))

    return store


@pytest.fixture
def mint_via_execute():
    def mint(identity, owner, nfme, value=parse_ether("0.1")):
        return identity.connect(owner).execute(OPERATION_CALL, nfme.address, value, MINT_CALL)

    return mint
