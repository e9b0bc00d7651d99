from __future__ import annotations

import hashlib
import hmac
import json
import os
from datetime import datetime
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from jsonschema import ValidationError, validate as jsonschema_validate
from sqlalchemy import select

from nfme_identity.abi import encode_call
from nfme_identity.attestation import ClaimIssuer, claim_from_json, claim_to_json, load_schema
from nfme_identity.chain import Chain
from nfme_identity.crypto import to_address
from nfme_identity.errors import Revert
from nfme_identity.issuer import DEFAULT_IDENTIFIER
from nfme_identity.models import hex_decode
from nfme_identity.verification import check_report
from webapp.crypto_utils import open_private_key
from webapp.db import DEFAULT_DATABASE_URL, init_db, init_engine, make_session_factory, session_scope
from webapp.indexer import EventIndexer
from webapp.models import AuditLog, IssuedClaim, RelayedEvent


def _load_issuer(app: Flask) -> ClaimIssuer:
    privkey_hex = app.config.get("ISSUER_PRIVKEY_HEX")
    sealed = app.config.get("ISSUER_KEY_SEALED")
    if not privkey_hex and sealed:
        privkey_hex = open_private_key(app.config.get("ISSUER_KEY_PASSPHRASE") or "", sealed)
    if not privkey_hex:
        app.logger.warning("No issuer key configured; using an ephemeral key")
    return ClaimIssuer(privkey_hex=privkey_hex or None, name="PlatformIssuer")


def create_app(
    config: Optional[Dict[str, Any]] = None,
    chain: Optional[Chain] = None,
    verifier_address: Optional[str] = None,
    factory_address: Optional[str] = None,
) -> Flask:
    """Build the issuer service.

    When a ledger is attached (`chain` plus `verifier_address`), revocations
    are also written to the ClaimVerifier and verification reports use the
    ledger's block height. With `factory_address`, relayed events are indexed.
    """
    # Load local .env if present
    load_dotenv()
    app = Flask(__name__)
    app.config.update(
        DATABASE_URL=os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL),
        ISSUER_PRIVKEY_HEX=os.environ.get("ISSUER_PRIVKEY_HEX"),
        ISSUER_KEY_SEALED=os.environ.get("ISSUER_KEY_SEALED"),
        ISSUER_KEY_PASSPHRASE=os.environ.get("ISSUER_KEY_PASSPHRASE"),
        ISSUER_API_TOKEN=os.environ.get("ISSUER_API_TOKEN"),
        REQUIRED_IDENTIFIER=os.environ.get("REQUIRED_IDENTIFIER", DEFAULT_IDENTIFIER),
        CLAIM_VALIDITY_BLOCKS=int(os.environ.get("CLAIM_VALIDITY_BLOCKS", "0")),
        RATELIMIT_DEFAULT=os.environ.get("RATELIMIT_DEFAULT", "200 per hour"),
    )
    if config:
        app.config.update(config)

    token = app.config.get("ISSUER_API_TOKEN")
    app.config["ISSUER_API_TOKEN_HASH"] = hashlib.sha256(token.encode()).hexdigest() if token else None

    engine = init_engine(app.config["DATABASE_URL"])
    init_db(engine)
    Session = make_session_factory(engine)

    limiter = Limiter(get_remote_address, app=app, default_limits=[app.config["RATELIMIT_DEFAULT"]])

    issuer = _load_issuer(app)
    app.config["ISSUER"] = issuer
    verifier_address = to_address(verifier_address) if verifier_address else None
    indexer = EventIndexer(chain, factory_address, Session) if chain is not None and factory_address else None

    claim_request_schema = load_schema("claim_request")

    def _authorized() -> bool:
        expected = app.config.get("ISSUER_API_TOKEN_HASH")
        auth = request.headers.get("Authorization", "")
        if not expected or not auth.startswith("Bearer "):
            return False
        presented = hashlib.sha256(auth.split(" ", 1)[1].encode()).hexdigest()
        return hmac.compare_digest(presented, expected)

    def _current_height() -> int:
        # Reports describe the block the next transaction would run in
        return chain.block_number + 1 if chain is not None else 0

    def _is_revoked(subject: str, identifier: str) -> bool:
        # The verifier's registry is authoritative once a ledger is attached
        if chain is not None and verifier_address:
            return bool(chain.call(verifier_address, encode_call("isRevoked(address,string)", subject, identifier)))
        with session_scope(Session) as s:
            row = s.scalar(
                select(IssuedClaim).where(
                    IssuedClaim.subject == subject,
                    IssuedClaim.identifier == identifier,
                    IssuedClaim.status == "revoked",
                )
            )
            return row is not None

    def _claim_response(rec: IssuedClaim) -> Dict[str, Any]:
        return {"id": rec.id, "status": rec.status, "claim": json.loads(rec.claim_json)}

    @app.errorhandler(ValidationError)
    def invalid_body(e: ValidationError):
        return jsonify({"error": "invalid request", "detail": e.message}), 400

    @app.errorhandler(ValueError)
    def malformed_value(e: ValueError):
        return jsonify({"error": "invalid request", "detail": str(e)}), 400

    @app.get("/healthz")
    def health():
        return {"status": "ok"}

    @app.get("/api/issuer")
    def api_issuer():
        return jsonify({
            "address": issuer.address,
            "name": issuer.name,
            "requiredIdentifier": app.config["REQUIRED_IDENTIFIER"],
            "claimVerifier": verifier_address,
        })

    @app.post("/api/claims")
    @limiter.limit("60 per hour")
    def api_claim_create():
        if not _authorized():
            return jsonify({"error": "unauthorized"}), 401
        body = request.get_json(silent=True) or {}
        jsonschema_validate(body, claim_request_schema)
        identifier = body.get("identifier", app.config["REQUIRED_IDENTIFIER"])
        valid_from = body.get("validFrom", 0)
        valid_to = body.get("validTo", 0)
        window = app.config["CLAIM_VALIDITY_BLOCKS"]
        if not valid_to and window:
            valid_to = (valid_from or _current_height()) + window
        if valid_from and valid_to and valid_to < valid_from:
            return jsonify({"error": "validTo must not precede validFrom"}), 400

        claim = issuer.sign_claim(
            identifier,
            body["subject"],
            payload=hex_decode(body.get("payload", "0x")),
            valid_from=valid_from,
            valid_to=valid_to,
        )
        with session_scope(Session) as s:
            rec = IssuedClaim(
                identifier=claim.identifier,
                issuer=claim.issuer,
                subject=claim.subject,
                valid_from=claim.valid_from,
                valid_to=claim.valid_to,
                claim_json=json.dumps(claim_to_json(claim)),
            )
            s.add(rec)
            s.add(AuditLog(action="issue_claim", target=claim.subject, message=claim.identifier))
            s.flush()
            payload = _claim_response(rec)
        app.logger.info("Issued claim %s for %s", claim.identifier, claim.subject)
        return jsonify(payload), 201

    @app.get("/api/claims/<int:claim_id>")
    def api_claim_public(claim_id: int):
        with session_scope(Session) as s:
            rec = s.get(IssuedClaim, claim_id)
            if not rec:
                return jsonify({"error": "not found"}), 404
            return jsonify(_claim_response(rec))

    @app.get("/api/claims/<int:claim_id>/status")
    def api_claim_status(claim_id: int):
        with session_scope(Session) as s:
            rec = s.get(IssuedClaim, claim_id)
            if not rec:
                return jsonify({"error": "not found"}), 404
            return jsonify({
                "id": rec.id,
                "status": rec.status,
                "revokedReason": rec.revoked_reason,
                "revokedAt": rec.revoked_at.isoformat() if rec.revoked_at else None,
            })

    def _set_revoked(claim_id: int, revoked: bool):
        if not _authorized():
            return jsonify({"error": "unauthorized"}), 401
        reason = (request.get_json(silent=True) or {}).get("reason", "")
        with session_scope(Session) as s:
            rec = s.get(IssuedClaim, claim_id)
            if not rec:
                return jsonify({"error": "not found"}), 404
            subject, identifier = rec.subject, rec.identifier
        if chain is not None and verifier_address:
            signature = "addRevocation(address,string)" if revoked else "removeRevocation(address,string)"
            try:
                chain.transact(issuer.address, verifier_address, encode_call(signature, subject, identifier))
            except Revert as e:
                app.logger.info("On-chain %s for %s failed: %s", signature, subject, e.reason)
                return jsonify({"error": "revocation rejected", "reason": e.reason}), 409
        with session_scope(Session) as s:
            rec = s.get(IssuedClaim, claim_id)
            if revoked:
                rec.status = "revoked"
                rec.revoked_reason = reason
                rec.revoked_at = datetime.utcnow()
            else:
                rec.status = "active"
                rec.revoked_reason = None
                rec.revoked_at = None
            action = "revoke_claim" if revoked else "reinstate_claim"
            s.add(AuditLog(action=action, target=subject, message=f"claim:{claim_id} {reason}"))
            payload = _claim_response(rec)
        return jsonify(payload)

    @app.post("/api/claims/<int:claim_id>/revoke")
    @limiter.limit("60 per hour")
    def api_claim_revoke(claim_id: int):
        return _set_revoked(claim_id, True)

    @app.post("/api/claims/<int:claim_id>/reinstate")
    @limiter.limit("60 per hour")
    def api_claim_reinstate(claim_id: int):
        return _set_revoked(claim_id, False)

    @app.post("/api/claims/verify")
    def api_claim_verify():
        body = request.get_json(silent=True) or {}
        if not isinstance(body.get("claim"), dict):
            return jsonify({"error": "invalid request", "detail": "claim object required"}), 400
        claim = claim_from_json(body["claim"])
        identity = to_address(body.get("identity", claim.subject))
        required = body.get("identifier", app.config["REQUIRED_IDENTIFIER"])
        steps = check_report(
            claim if claim.identifier == required else None,
            trusted_issuer=issuer.address,
            subject=identity,
            block_number=int(body.get("blockNumber", _current_height())),
            is_revoked=_is_revoked,
        )
        failed = next((s for s in steps if not s.ok), None)
        return jsonify({
            "valid": failed is None,
            "reason": failed.reason if failed else None,
            "steps": [{"name": s.name, "status": "ok" if s.ok else "fail"} for s in steps],
        })

    @app.get("/api/events")
    def api_events():
        if indexer is not None:
            indexer.sync()
        identity = request.args.get("identity")
        with session_scope(Session) as s:
            query = select(RelayedEvent).order_by(RelayedEvent.log_index)
            if identity:
                query = query.where(RelayedEvent.identity == to_address(identity))
            rows = s.scalars(query).all()
            return jsonify([
                {
                    "identity": r.identity,
                    "owner": r.owner,
                    "actor": r.actor,
                    "action": r.action,
                    "blockNumber": r.block_number,
                }
                for r in rows
            ])

    return app


if __name__ == "__main__":
    app = create_app()
    # Dev server; for production, run via a WSGI server
    app.run(host="0.0.0.0", port=8000, debug=True)
