"""Network-callable endpoints for proof resolution and receipt migration."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Optional

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from proofkeeper.config import ProofkeeperConfig, config_from_env
from proofkeeper.errors import ValidationError
from proofkeeper.migration import BucketMigrator
from proofkeeper.registrations import RegistrationStore, open_registrations
from proofkeeper.resolver import ProofResolver
from proofkeeper.storage import ObjectStorage, open_storage

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]

Authorizer = Callable[[str, str], bool]


class ResolveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    application_id: str = Field(alias="applicationId", min_length=1)
    bucket: Optional[str] = None
    page_size: Optional[int] = Field(default=None, alias="pageSize")
    max_pages: Optional[int] = Field(default=None, alias="maxPages")


class ReceiptsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    application_id: str = Field(alias="applicationId", min_length=1)


class MigrateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    legacy_bucket: Optional[str] = Field(default=None, alias="legacyBucket")
    canonical_bucket: Optional[str] = Field(default=None, alias="canonicalBucket")
    dry_run: bool = Field(default=False, alias="dryRun")


def _error(message: str, status: int) -> tuple[Any, int]:
    return jsonify({"error": message}), status


def _services() -> dict[str, Any]:
    return current_app.extensions["proofkeeper"]


def _authorize(action: str) -> tuple[Any, int] | None:
    """Check the caller's bearer token; identity is established upstream."""
    header = request.headers.get("Authorization")
    if not header:
        return _error("Missing authorization header", 401)
    token = header.replace("Bearer ", "", 1).strip()
    authorizer: Authorizer | None = _services()["authorizer"]
    if authorizer is not None and not authorizer(token, action):
        return _error("Not authorized", 403)
    return None


def _body() -> dict[str, Any]:
    if not request.get_data(cache=True):
        return {}
    data = request.get_json(silent=True, force=True)
    if not isinstance(data, dict):
        raise ValidationError("Malformed JSON body")
    return data


def _validation_message(err: PydanticValidationError) -> str:
    first = err.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid {loc}: {first.get('msg')}" if loc else str(first.get("msg"))


def create_app(
    config: ProofkeeperConfig | None = None,
    *,
    storage: ObjectStorage | None = None,
    registrations: RegistrationStore | None = None,
    authorizer: Authorizer | None = None,
) -> Flask:
    """Build the Flask app exposing the resolve, receipts and migrate endpoints.

    Storage and registrations default to ``PROOFKEEPER_STORAGE_URI`` and
    ``PROOFKEEPER_REGISTRATIONS_URI``.
    """
    cfg = config or config_from_env()
    if storage is None:
        storage = open_storage(os.getenv("PROOFKEEPER_STORAGE_URI", "supabase://"), config=cfg)
    if registrations is None:
        reg_uri = os.getenv("PROOFKEEPER_REGISTRATIONS_URI")
        if reg_uri:
            registrations = open_registrations(reg_uri, config=cfg)

    app = Flask(__name__)
    CORS(
        app,
        resources={r"/*": {"origins": "*"}},
        allow_headers=CORS_ALLOW_HEADERS,
        send_wildcard=True,
    )
    app.extensions["proofkeeper"] = {
        "config": cfg,
        "resolver": ProofResolver(storage, cfg),
        "migrator": BucketMigrator(storage, registrations, cfg),
        "authorizer": authorizer,
    }

    @app.errorhandler(PydanticValidationError)
    def _bad_request(err: PydanticValidationError):  # type: ignore[no-untyped-def]
        return _error(_validation_message(err), 400)

    @app.errorhandler(ValidationError)
    def _invalid(err: ValidationError):  # type: ignore[no-untyped-def]
        return _error(str(err), 400)

    @app.post("/resolve-payment-proof")
    def resolve_payment_proof():  # type: ignore[no-untyped-def]
        denied = _authorize("resolve")
        if denied is not None:
            return denied
        req = ResolveRequest.model_validate(_body())
        url = _services()["resolver"].resolve(
            req.application_id,
            bucket=req.bucket,
            page_size=req.page_size,
            max_pages=req.max_pages,
        )
        return jsonify({"url": url})

    @app.post("/list-payment-receipts")
    def list_payment_receipts():  # type: ignore[no-untyped-def]
        denied = _authorize("list_receipts")
        if denied is not None:
            return denied
        req = ReceiptsRequest.model_validate(_body())
        receipts = _services()["resolver"].list_receipts(req.application_id)
        return jsonify({"receipts": [r.to_dict() for r in receipts]})

    @app.post("/migrate-payment-receipts")
    def migrate_payment_receipts():  # type: ignore[no-untyped-def]
        denied = _authorize("migrate")
        if denied is not None:
            return denied
        req = MigrateRequest.model_validate(_body())
        try:
            report = _services()["migrator"].migrate(
                req.legacy_bucket, req.canonical_bucket, dry_run=req.dry_run
            )
        except Exception as e:
            logger.exception("Receipt migration failed")
            return jsonify({"success": False, "error": str(e)}), 500
        return jsonify({"success": True, "result": report.to_dict()})

    return app
