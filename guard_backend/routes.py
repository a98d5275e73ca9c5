"""
STEAM GUARD API ROUTES - FLASK BLUEPRINT

Every endpoint returns JSON. Confirmation endpoints take the captured web
session in the body: {"cookies": {"steamLoginSecure": "...", ...}}.

EXAMPLES:
curl http://localhost:5000/api/accounts
curl http://localhost:5000/api/code/alice
curl -F file=@alice.maFile http://localhost:5000/api/import
curl -X POST http://localhost:5000/api/confirmations/alice -H "Content-Type: application/json" -d '{"cookies": {...}}'
curl -X POST http://localhost:5000/api/confirmations/alice/123/allow -H "Content-Type: application/json" -d '{"cookies": {...}}'
"""

import logging
import os
import tempfile

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from guard_core.errors import (
    GuardError,
    InvalidSecret,
    MissingCredentialField,
    OperationInProgress,
    StorageFailure,
)
from guard_core.session import Session
from guard_core.steam_codes import TIME_STEP, current_code
from guard_core.trade_client import OPERATIONS

logger = logging.getLogger(__name__)

guard_bp = Blueprint('guard', __name__, url_prefix='/api')


def _state():
    return current_app.extensions["steam_guard"]


def _account_or_404(name):
    account = _state().repository.find(name)
    if account is None:
        return None, (jsonify({"error": f"Account '{name}' not found"}), 404)
    return account, None


def _session_from_body():
    data = request.get_json(silent=True) or {}
    if "cookies" not in data:
        return None, (jsonify({"error": "cookies are required in JSON body"}), 400)
    try:
        return Session.from_json(data["cookies"]), None
    except ValueError as e:
        return None, (jsonify({"error": str(e)}), 400)


def _client_payload(client, result):
    state = client.state
    return {
        "ok": result.ok,
        "message": result.message,
        "is_loading": state.is_loading,
        "status_message": state.status_message,
        "confirmations": [c.to_dict() for c in state.confirmations],
    }


@guard_bp.errorhandler(GuardError)
def handle_guard_error(e):
    if isinstance(e, (InvalidSecret, MissingCredentialField)):
        status = 400
    elif isinstance(e, OperationInProgress):
        status = 409
    elif isinstance(e, StorageFailure):
        status = 500
    else:
        status = 502
    logger.warning("%s: %s", type(e).__name__, e)
    return jsonify({"error": str(e), "kind": type(e).__name__}), status


@guard_bp.route('/accounts', methods=['GET'])
def list_accounts():
    """GET /api/accounts - known accounts, no secrets."""
    return jsonify([
        {
            "account_name": a.account_name,
            "source_filename": a.source_filename,
            "bundled": a.is_bundled,
            "can_confirm": bool(a.identity_secret and a.device_id and a.steamid),
        }
        for a in _state().repository.accounts
    ])


@guard_bp.route('/code/<string:name>', methods=['GET'])
def get_code(name):
    """
    GET /api/code/<account_name>

    Output: {"code": "X7K2M", "fraction_remaining": 0.5, "remaining": 15}
    """
    account, error = _account_or_404(name)
    if error:
        return error
    result = current_code(account.shared_secret)
    return jsonify({
        "account_name": account.account_name,
        "code": result.code,
        "fraction_remaining": result.fraction_remaining,
        "remaining": round(result.fraction_remaining * TIME_STEP),
    })


@guard_bp.route('/import', methods=['POST'])
def import_account():
    """POST /api/import (multipart, field "file") - store a .maFile."""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return jsonify({"error": "file is required"}), 400
    filename = secure_filename(upload.filename)
    if not filename:
        return jsonify({"error": "invalid file name"}), 400

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, filename)
        upload.save(path)
        account = _state().repository.import_file(path)

    return jsonify({
        "account_name": account.account_name,
        "source_filename": account.source_filename,
    }), 201


@guard_bp.route('/accounts/<string:name>', methods=['DELETE'])
def delete_account(name):
    account, error = _account_or_404(name)
    if error:
        return error
    _state().repository.delete(account)
    _state().clients.pop(account.account_name, None)
    return jsonify({"deleted": account.account_name, "bundled": account.is_bundled})


@guard_bp.route('/confirmations/<string:name>', methods=['POST'])
async def list_confirmations(name):
    """POST /api/confirmations/<account_name> - refresh and return the list."""
    account, error = _account_or_404(name)
    if error:
        return error
    session, error = _session_from_body()
    if error:
        return error

    client = _state().client_for(account.account_name)
    result = await client.list(account, session)
    return jsonify(_client_payload(client, result)), (200 if result.ok else 502)


@guard_bp.route('/confirmations/<string:name>/<string:cid>/<string:operation>', methods=['POST'])
async def act_on_confirmation(name, cid, operation):
    """
    POST /api/confirmations/<account_name>/<id>/<allow|cancel>

    The id must be in the list returned by the last listing call. The
    response is sent after the follow-up re-list has completed.
    """
    if operation not in OPERATIONS:
        return jsonify({"error": f"operation must be one of {list(OPERATIONS)}"}), 400
    account, error = _account_or_404(name)
    if error:
        return error
    session, error = _session_from_body()
    if error:
        return error

    client = _state().client_for(account.account_name)
    target = next((c for c in client.confirmations if c.id == cid), None)
    if target is None:
        return jsonify({"error": f"Confirmation {cid} not found, list confirmations first"}), 404

    result = await client.act(target, account, session, operation)
    if result.ok:
        await client.wait_for_refresh()
    return jsonify(_client_payload(client, result)), (200 if result.ok else 502)
