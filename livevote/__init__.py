import logging

from flasgger import Swagger
from flask import Flask

from .config import Config
from .errors import register_error_handlers
from .extensions import db, migrate, jwt, ma
from .middleware.request_id import RequestIdFilter, init_request_id
from .models.token_blocklist import TokenBlocklist
from .services.ledger import LedgerMirror
from .services.live_feed import VoteFeed
from .swagger_config import swagger_template

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] request_id=%(request_id)s %(message)s"


def _configure_logging(app: Flask) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())

    # app.logger is the "livevote" logger; service module loggers propagate into it
    app.logger.handlers[:] = [handler]
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))


def create_app(config_class=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)
    _configure_logging(app)
    Swagger(app, template=swagger_template(app))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)

    # Shared collaborators, handed to request handlers through api.deps
    app.extensions["vote_feed"] = VoteFeed()
    app.extensions["ledger_mirror"] = LedgerMirror.from_config(app.config)

    # Middleware + errors
    init_request_id(app)
    register_error_handlers(app)

    from .api.auth.routes import auth_bp
    from .api.voting.routes import voting_bp
    from .api.results.routes import results_bp
    from .api.admin.routes import admin_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(voting_bp, url_prefix="/api/vote")
    app.register_blueprint(results_bp, url_prefix="/api")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    from .cli import register_commands
    register_commands(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}, 200

    @jwt.token_in_blocklist_loader
    def is_token_revoked(jwt_header, jwt_payload) -> bool:
        jti = jwt_payload.get("jti")
        if not jti:
            return True
        return TokenBlocklist.is_blocklisted(jti)

    return app
