from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

import logging
import random
import uuid
from http import HTTPStatus

import click
from flask import Flask, jsonify, request, g, current_app
from marshmallow import ValidationError
from pythonjsonlogger import jsonlogger
from werkzeug.exceptions import HTTPException as WerkzeugHTTPException

from .config import Config
from .config_validator import validate_engine_config
from .error_codes import ErrorCodes
from .exceptions import AppException, ConfigurationException
from .routes.engine import engine_bp
from .services.variance_tracker import VarianceTracker
from .utils.engine_config import load_engine_config
from .utils.spin_handler import SpinEngine


class RequestIdFilter(logging.Filter):
    def filter(self, record):
        try:
            record.request_id = g.get('request_id', 'N/A')
        except RuntimeError:
            # Outside an application context (startup, CLI)
            record.request_id = 'N/A'
        return True


def configure_logging(app):
    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(levelname)s %(request_id)s %(module)s %(funcName)s %(lineno)d %(message)s'
    )
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())

    level = logging.DEBUG if app.debug else getattr(logging, app.config.get('LOG_LEVEL', 'INFO'))
    for logger in (app.logger, logging.getLogger('cluster_engine')):
        if logger.hasHandlers():
            logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False


def build_engine(app):
    """Loads the engine tables once and wires one shared tracker into the engine."""
    try:
        engine_config = load_engine_config(app.config.get('ENGINE_CONFIG_PATH'))
    except (FileNotFoundError, ValueError) as e:
        app.logger.critical(f"Engine configuration could not be loaded: {e}")
        raise ConfigurationException(details={'reason': str(e)}) from e
    report = validate_engine_config(engine_config)
    if not report['is_valid']:
        app.logger.warning(f"Engine configuration failed advisory checks: {report['errors']}")

    seed = app.config.get('ENGINE_RANDOM_SEED')
    rng = random.Random(seed) if seed is not None else random.Random()
    engine = SpinEngine(engine_config, variance_tracker=VarianceTracker(engine_config), rng=rng)
    app.extensions['spin_engine'] = engine
    app.extensions['engine_config_report'] = report
    return engine


def _error_response(error_code, status_message, status_code, details=None, action_button=None):
    return jsonify({
        'request_id': g.get('request_id', 'N/A'),
        'status': False,
        'error_code': error_code,
        'status_message': status_message,
        'details': details if details is not None else {},
        'action_button': action_button
    }), status_code


def create_app(config_class=Config, engine=None):
    """Application factory."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    if not app.testing:
        configure_logging(app)

    if engine is not None:
        app.extensions['spin_engine'] = engine
    else:
        build_engine(app)

    @app.before_request
    def assign_request_id():
        g.request_id = str(uuid.uuid4())

    # --- Error Handlers ---

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        current_app.logger.warning(
            f"Validation error: {e.messages} - Error Code: {ErrorCodes.VALIDATION_ERROR}"
        )
        return _error_response(
            ErrorCodes.VALIDATION_ERROR, 'Input validation failed.',
            HTTPStatus.UNPROCESSABLE_ENTITY, details={'errors': e.messages}
        )

    @app.errorhandler(AppException)
    def handle_app_exception(e):
        current_app.logger.error(
            f"AppException: {e.error_code} - {e.status_message} - Details: {e.details}",
            exc_info=e.status_code >= 500
        )
        return _error_response(e.error_code, e.status_message, e.status_code, e.details, e.action_button)

    @app.errorhandler(WerkzeugHTTPException)
    def handle_werkzeug_http_exception(e):
        error_code = ErrorCodes.GENERIC_ERROR
        if e.code == 404:
            error_code = ErrorCodes.NOT_FOUND
        elif e.code == 405:
            error_code = ErrorCodes.METHOD_NOT_ALLOWED
        elif e.code >= 500:
            error_code = ErrorCodes.INTERNAL_SERVER_ERROR

        current_app.logger.warning(
            f"HTTPException: {e.code} - {e.name}: {e.description} - Error Code: {error_code} - Path: {request.path}"
        )
        return _error_response(error_code, e.name, e.code, details={'description': e.description})

    @app.errorhandler(Exception)
    def handle_global_exception(e):
        current_app.logger.critical(
            f"Unhandled exception. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}", exc_info=True
        )
        return _error_response(
            ErrorCodes.INTERNAL_SERVER_ERROR,
            'An unexpected internal server error occurred. Please try again later.',
            HTTPStatus.INTERNAL_SERVER_ERROR
        )

    app.register_blueprint(engine_bp)

    # --- CLI ---

    @app.cli.command("simulate-rtp")
    @click.option('-n', '--spins', type=int, default=10_000, help='Number of spins to simulate (default: 10,000)')
    @click.option('-w', '--wager', type=str, default='1.00', help='Wager per spin (default: 1.00)')
    @click.option('--seed', type=int, default=None, help='Seed for a reproducible run')
    @click.option('--outcomes-only', is_flag=True, help='Skip grid synthesis and simulate outcome selection only')
    @click.option('--graphs', is_flag=True, help='Save summary charts to slot_tester_graphs/')
    def simulate_rtp_command(spins, wager, seed, outcomes_only, graphs):
        """Runs an RTP simulation against the configured engine tables."""
        from .utils.slot_tester import SlotTester

        if spins <= 0:
            click.echo("Error: --spins must be positive.")
            return
        tester = SlotTester(
            num_spins=spins,
            wager=wager,
            config_path=app.config.get('ENGINE_CONFIG_PATH'),
            seed=seed,
            outcomes_only=outcomes_only
        )
        tester.run_simulation()
        tester.print_summary_statistics()
        if graphs:
            tester.generate_graphs()

    return app
