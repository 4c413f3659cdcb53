import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from stellar_sdk import Server
from werkzeug.exceptions import HTTPException

from . import stellar_operations
from .assets import AssetRegistry
from .config import ASSET_CODE, FRIENDBOT_URL, HORIZON_URL, USDC_ISSUER
from .errors import TradeLinkError, ValidationError
from .liquidity import IssuerContext, LiquidityBootstrap
from .market import MarketRateAggregator
from .payments import PaymentRouter

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__)


class Services:
    """
    Everything the routes need, built once per app.

    The issuer context lives here for the lifetime of the process and is
    read-only after start; nothing else is shared between requests.
    """

    def __init__(self, server, issuer, network_passphrase, friendbot_url=FRIENDBOT_URL):
        self.server = server
        self.issuer = issuer
        self.network_passphrase = network_passphrase
        self.friendbot_url = friendbot_url
        self.registry = AssetRegistry(usdc_issuer=USDC_ISSUER, tzs_issuer=issuer.public_key)
        self.router = PaymentRouter(server, self.registry, network_passphrase)
        self.market = MarketRateAggregator(server, self.registry)
        self.bootstrap = LiquidityBootstrap(
            server,
            issuer,
            network_passphrase,
            funder=lambda public_key: stellar_operations.fund_account_friendbot(public_key, friendbot_url),
        )


def services():
    return current_app.extensions["tradelink"]


def request_json():
    return request.get_json(silent=True) or {}


NUMERIC_FIELDS = ("amount",)


def require(data, fields, message, optional=()):
    """
    Presence and type check of JSON fields. Every field is a string except
    amounts, which may also be JSON numbers.
    """
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(message)
    for field in tuple(fields) + tuple(optional):
        value = data.get(field)
        if value is None or isinstance(value, str):
            continue
        if field in NUMERIC_FIELDS and isinstance(value, (int, float)) and not isinstance(value, bool):
            continue
        kind = "a string or number" if field in NUMERIC_FIELDS else "a string"
        raise ValidationError(f"Field '{field}' must be {kind}")


@api.route('/')
def home():
    return jsonify({
        "message": "Stellar Backend Running",
        "endpoints": {
            "/create-account": "POST - Generates a keypair and funds it with Friendbot.",
            "/verify-login": "POST - {'publicKey', 'secretKey'} - Checks the keypair and that the account exists.",
            "/account/<publicKey>": "GET - Balances and the latest payments.",
            "/add-trustline": "POST - {'publicKey', 'secretKey', 'assetCode', 'assetIssuer'?}",
            "/send-payment": "POST - Direct or path payment between XLM, USDC and TZS.",
            "/market-rates": "GET - Orderbook rates with inverses.",
            "/tzs-issuer": "GET - Public key of the TZS issuer.",
            "/issue-tzs": "POST - {'destination', 'amount'} - Sends demo TZS.",
        },
    })


@api.route('/create-account', methods=['POST'])
def create_account_route():
    svc = services()
    return jsonify(stellar_operations.create_account(svc.server, svc.friendbot_url))


@api.route('/verify-login', methods=['POST'])
def verify_login_route():
    data = request_json()
    require(data, ("publicKey", "secretKey"), "Missing publicKey or secretKey")
    return jsonify(stellar_operations.verify_login(services().server, data["publicKey"], data["secretKey"]))


@api.route('/account/<public_key>', methods=['GET'])
def account_route(public_key):
    return jsonify(stellar_operations.account_summary(services().server, public_key))


@api.route('/add-trustline', methods=['POST'])
def add_trustline_route():
    data = request_json()
    require(data, ("publicKey", "secretKey", "assetCode"), "Missing publicKey, secretKey, or assetCode",
            optional=("assetIssuer",))
    svc = services()
    result = stellar_operations.add_trustline(
        svc.server,
        svc.registry,
        svc.network_passphrase,
        public_key=data["publicKey"],
        secret_key=data["secretKey"],
        asset_code=data["assetCode"],
        asset_issuer=data.get("assetIssuer"),
    )
    return jsonify({"success": result.successful, "transactionHash": result.hash, "result": result.result})


@api.route('/send-payment', methods=['POST'])
def send_payment_route():
    data = request_json()
    fields = ("senderPublicKey", "senderSecretKey", "receiverPublicKey", "sendAsset", "destinationAsset", "amount")
    require(data, fields, "Missing required fields: " + ", ".join(fields))
    outcome = services().router.route(
        data["senderPublicKey"],
        data["senderSecretKey"],
        data["receiverPublicKey"],
        data["sendAsset"],
        data["destinationAsset"],
        data["amount"],
    )
    return jsonify({"success": outcome.success, "transactionHash": outcome.transaction_hash, "result": outcome.result})


@api.route('/market-rates', methods=['GET'])
def market_rates_route():
    return jsonify({"rates": services().market.rates()})


@api.route('/tzs-issuer', methods=['GET'])
def tzs_issuer_route():
    return jsonify({"tzsIssuer": services().issuer.public_key})


@api.route('/issue-tzs', methods=['POST'])
def issue_tzs_route():
    data = request_json()
    require(data, ("destination", "amount"), "Missing destination or amount")
    svc = services()
    result = stellar_operations.issue_custom_asset(
        svc.server, svc.issuer, svc.network_passphrase, data["destination"].strip(), data["amount"],
    )
    return jsonify({"success": result.successful, "transactionHash": result.hash})


def handle_tradelink_error(error):
    if error.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.path, error.message)
    return jsonify(error.to_dict()), error.status_code


def handle_unexpected_error(error):
    if isinstance(error, HTTPException):
        return error
    logger.exception("%s %s failed", request.method, request.path)
    return jsonify({"error": str(error) or "Internal server error"}), 500


def create_app(server=None, issuer=None, network_passphrase=None, friendbot_url=FRIENDBOT_URL,
               start_bootstrap=False):
    """
    Builds the Flask app.

    A fresh issuer is generated unless one is passed in. With start_bootstrap
    the liquidity bootstrap runs on a background thread; the app serves
    requests regardless of how it ends.
    """
    app = Flask(__name__)
    svc = Services(
        server or Server(horizon_url=HORIZON_URL),
        issuer or IssuerContext.generate(ASSET_CODE),
        network_passphrase or stellar_operations.get_network_passphrase(),
        friendbot_url,
    )
    app.extensions["tradelink"] = svc
    app.register_blueprint(api)
    app.register_error_handler(TradeLinkError, handle_tradelink_error)
    app.register_error_handler(Exception, handle_unexpected_error)
    CORS(app)

    logger.info("%s issuer (testnet): %s", ASSET_CODE, svc.issuer.public_key)
    if start_bootstrap:
        svc.bootstrap.start()
    return app
