from __future__ import annotations

import json

from nfme_identity.abi import encode_call, format_ether, parse_ether
from nfme_identity.attestation import ClaimIssuer, claim_setter_args, claim_to_json
from nfme_identity.chain import Chain
from nfme_identity.crypto import KeyPair
from nfme_identity.factory import IdentityFactory
from nfme_identity.identity import OPERATION_CALL
from nfme_identity.issuer import DEFAULT_IDENTIFIER, NFMe
from nfme_identity.verifier import ClaimVerifier


def example_usage():
    chain = Chain()
    issuer = ClaimIssuer(seed=b"alice", name="Alice")
    bob = KeyPair.from_seed("bob")
    chain.fund(issuer.address, parse_ether("10"))
    chain.fund(bob.address, parse_ether("10"))

    verifier = chain.deploy(issuer, ClaimVerifier)
    nfme = chain.deploy(issuer, NFMe, verifier.address)
    factory = chain.deploy(issuer, IdentityFactory)

    # Bob deploys his Identity through the factory and funds it
    receipt = factory.connect(bob).deploy_identity()
    identity = chain.contract_at(receipt.events_named("IdentityDeployed")[0].args["identity"])
    chain.send_value(bob, identity.address, parse_ether("1"))

    # Alice signs the mint claim for Bob's Identity; Bob stores it
    claim = issuer.sign_claim(DEFAULT_IDENTIFIER, identity.address)
    identity.connect(bob).set_claim(*claim_setter_args(claim))

    # The Identity calls safeMint() on NFMe, paying from its own balance
    identity.connect(bob).execute(OPERATION_CALL, nfme.address, parse_ether("0.1"), encode_call("safeMint()"))

    return {
        "identity": identity.address,
        "claim": claim_to_json(claim),
        "tokenOwner": nfme.owner_of(0),
        "identityBalance": format_ether(chain.balance_of(identity.address)),
        "relayedEvents": [e.args for e in chain.get_logs(factory.address, "OwnerActionRelayed")],
    }


if __name__ == "__main__":
    result = example_usage()
    print(json.dumps(result, indent=2))
