"""
FLASK APP ENTRY POINT - STEAM GUARD API SERVER
==============================================

Builds the Flask app, enables CORS for a separate frontend and registers the
guard blueprint. Shared objects (account repository, one confirmation client
per account) live in app.extensions["steam_guard"].

Run:
    python -m guard_backend.app
"""
from dataclasses import dataclass, field

from flask import Flask, jsonify
from flask_cors import CORS
import httpx

from guard_core import settings
from guard_core.accounts import AccountRepository
from guard_core.trade_client import ConfirmationClient


@dataclass
class GuardState:
    repository: AccountRepository
    base_url: str | None = None
    refresh_delay: float | None = None
    transport: httpx.AsyncBaseTransport | None = None
    clients: dict = field(default_factory=dict)

    def client_for(self, account_name: str) -> ConfirmationClient:
        client = self.clients.get(account_name)
        if client is None:
            client = ConfirmationClient(
                base_url=self.base_url,
                refresh_delay=self.refresh_delay,
                transport=self.transport,
            )
            self.clients[account_name] = client
        return client


def create_app(
    repository: AccountRepository | None = None,
    base_url: str | None = None,
    refresh_delay: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Flask:
    app = Flask(__name__)
    # frontend may be served from another origin
    CORS(app)

    repository = repository or AccountRepository()
    repository.load_all()
    app.extensions["steam_guard"] = GuardState(
        repository=repository,
        base_url=base_url,
        refresh_delay=refresh_delay,
        transport=transport,
    )

    from guard_backend.routes import guard_bp
    app.register_blueprint(guard_bp)

    @app.route('/', methods=['GET'])
    def index():
        return jsonify({
            "service": "steam-guard",
            "accounts": len(repository.accounts),
            "endpoints": sorted(str(rule) for rule in app.url_map.iter_rules() if str(rule).startswith("/api")),
        })

    return app


if __name__ == '__main__':
    settings.configure_logging()
    create_app().run(debug=False, host='127.0.0.1', port=5000)
