from flask import Blueprint, request, jsonify, current_app

from ..config_validator import expected_cascade_rtp, expected_total_rtp
from ..exceptions import InternalServerErrorException, ValidationException
from ..schemas import SpinRequestSchema, SpinResultSchema

engine_bp = Blueprint('engine', __name__, url_prefix='/api/engine')


def _engine():
    engine = current_app.extensions.get('spin_engine')
    if engine is None:
        raise InternalServerErrorException(status_message="Spin engine is not initialised.")
    return engine


@engine_bp.route('/spin', methods=['POST'])
def spin():
    json_data = request.get_json(silent=True)
    if not json_data:
        raise ValidationException(status_message="Invalid JSON payload.")

    schema = SpinRequestSchema(
        min_wager=current_app.config.get('MIN_WAGER'),
        max_wager=current_app.config.get('MAX_WAGER')
    )
    data = schema.load(json_data)  # ValidationError is handled by the app-level handler

    result = _engine().spin(data['wager'])
    current_app.logger.info(
        f"Spin wager={result.wager} category={result.category.value} payout={result.payout} "
        f"cascades={len(result.cascades)}"
    )
    return jsonify({'status': True, 'result': SpinResultSchema().dump(result)})


@engine_bp.route('/probabilities', methods=['GET'])
def probabilities():
    engine = _engine()
    return jsonify({
        'status': True,
        'probabilities': engine.probability_snapshot(),
        'base_probabilities': {c.value: p for c, p in engine.config.probabilities.items()},
        'target_rtp': engine.config.target_rtp,
        'expected_rtp': engine.config.expected_rtp(),
        'expected_cascade_rtp': expected_cascade_rtp(engine.config),
        'expected_total_rtp': expected_total_rtp(engine.config)
    })


@engine_bp.route('/variance', methods=['GET'])
def variance():
    return jsonify({'status': True, 'variance': _engine().variance_snapshot()})
