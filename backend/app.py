from typing import Any

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from config import Settings
from errors import (
    BallotChainError,
    ConfigurationError,
    ContractRevertError,
    NetworkError,
    UserDeclinedError,
    ValidationError,
)
from logger import get_logger, setup_logging
from privacy import hash_voter_identity
from results import ReadStatus
from services import Services, build_services

logger = get_logger(__name__)

EXTENSION_KEY = "ballotchain"


def _status_for(exc: BallotChainError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, UserDeclinedError):
        return 403
    if isinstance(exc, ContractRevertError):
        return 409
    if isinstance(exc, NetworkError):
        return 502
    if isinstance(exc, ConfigurationError):
        return 503
    return 500


def _error_response(exc: BallotChainError):
    return jsonify(exc.to_dict()), _status_for(exc)


def _services_or_error() -> tuple[Services | None, tuple[dict[str, str], int] | None]:
    services = current_app.extensions.get(EXTENSION_KEY)
    if services is None:
        init_error = current_app.config.get("BALLOTCHAIN_INIT_ERROR") or "unknown error"
        return None, ({"error": f"Blockchain client unavailable: {init_error}"}, 503)
    return services, None


def _int_field(data: dict[str, Any], name: str) -> int:
    try:
        return int(data.get(name))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be an integer", field_name=name) from exc


def create_app(services: Services | None = None, settings: Settings | None = None) -> Flask:
    app = Flask(__name__)
    CORS(app)

    if services is None:
        try:
            settings = settings or Settings.from_env()
            setup_logging(settings.log_level, settings.log_dir)
            services = build_services(settings)
        except BallotChainError as exc:
            logger.error("Blockchain services unavailable: %s", exc)
            app.config["BALLOTCHAIN_INIT_ERROR"] = str(exc)
    if services is not None:
        app.extensions[EXTENSION_KEY] = services

    @app.errorhandler(BallotChainError)
    def handle_chain_error(exc: BallotChainError):
        return _error_response(exc)

    @app.route("/health")
    def health():
        services = current_app.extensions.get(EXTENSION_KEY)
        return jsonify(
            {
                "status": "ok",
                "blockchain_client": "ready" if services else "unavailable",
                "blockchain_error": current_app.config.get("BALLOTCHAIN_INIT_ERROR"),
                "event_queries": bool(services and services.gateway.supports_events),
                "signer": bool(services and services.signer),
            }
        )

    @app.route("/elections/active", methods=["GET"])
    def active_election():
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]
        return jsonify({"election_id": svc.discovery.active_election_id()})

    @app.route("/elections", methods=["GET"])
    def list_elections():
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]
        return jsonify({"elections": [s.to_dict() for s in svc.explorer.list_elections()]})

    @app.route("/elections/stats", methods=["GET"])
    def election_stats():
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]
        return jsonify(svc.explorer.statistics().to_dict())

    @app.route("/elections/<int:election_id>", methods=["GET"])
    def election_info(election_id: int):
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]
        result = svc.reader.read_election_info(election_id)
        if result.status is ReadStatus.NOT_FOUND:
            return jsonify({"error": "Election not found"}), 404
        if result.status is ReadStatus.FAILED:
            return jsonify({"error": "Election data unavailable", "kind": result.error.kind}), 503
        return jsonify({**result.value.to_dict(), "source": result.source.value})

    @app.route("/elections/<int:election_id>/candidates", methods=["GET"])
    def election_candidates(election_id: int):
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]
        result = svc.reader.read_all_candidates(election_id)
        candidates = result.value if result.is_found else []
        return jsonify(
            {
                "election_id": election_id,
                "candidates": [c.to_dict() for c in candidates],
                "source": result.source.value if result.is_found else None,
            }
        )

    @app.route("/elections/<int:election_id>/total-votes", methods=["GET"])
    def election_total_votes(election_id: int):
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]
        return jsonify({"election_id": election_id, "total_votes": svc.reader.get_total_votes(election_id)})

    @app.route("/vote", methods=["POST"])
    def vote():
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]

        data = request.json or {}
        election_id = _int_field(data, "election_id")
        candidate_index = _int_field(data, "candidate_index")
        voter_hash = data.get("voter_hash")
        if not voter_hash:
            voter_hash = hash_voter_identity(str(data.get("voter_id") or ""))

        outcome = svc.submitter.cast_vote(election_id, candidate_index, voter_hash)
        return jsonify({**outcome.to_dict(), "vote_hash": voter_hash})

    @app.route("/admin/is-admin/<address>", methods=["GET"])
    def is_admin(address: str):
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]
        return jsonify({"address": address, "is_admin": svc.admin.is_admin(address)})

    @app.route("/admin/elections", methods=["POST"])
    def create_election():
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]

        data = request.json or {}
        names = data.get("candidate_names") or []
        parties = data.get("candidate_parties") or []
        if not isinstance(names, list) or not isinstance(parties, list):
            return jsonify({"error": "candidate_names and candidate_parties must be lists"}), 400

        outcome = svc.admin.create_election(
            name=(data.get("name") or "").strip(),
            start_time=_int_field(data, "start_time"),
            end_time=_int_field(data, "end_time"),
            candidate_names=[str(n).strip() for n in names],
            candidate_parties=[str(p).strip() for p in parties],
        )
        return jsonify(outcome.to_dict()), 201

    @app.route("/transactions", methods=["GET"])
    def transactions():
        svc, err = _services_or_error()
        if err:
            return jsonify(err[0]), err[1]
        return jsonify({"transactions": [r.to_dict() for r in svc.history.reconstruct()]})

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
