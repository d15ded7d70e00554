from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from cluster_engine.app import create_app
from cluster_engine.config import TestingConfig
from cluster_engine.error_codes import ErrorCodes
from cluster_engine.exceptions import ConfigurationException, InvalidWagerException
from cluster_engine.models import CATEGORY_ORDER


@pytest.fixture
def app():
    return create_app(TestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


class TestSpinEndpoint:

    def test_spin(self, client):
        response = client.post('/api/engine/spin', json={'wager': '2.00'})
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] is True
        result = data['result']
        assert result['wager'] == '2.00'
        assert result['category'] in [c.value for c in CATEGORY_ORDER]
        assert Decimal(result['payout']) == Decimal(result['base_payout']) + Decimal(result['cascade_payout'])
        assert len(result['grid']) == 6
        assert len(result['cascades']) <= 2

    def test_spin_updates_variance(self, client):
        client.post('/api/engine/spin', json={'wager': 5})
        data = client.get('/api/engine/variance').get_json()
        assert data['status'] is True
        assert data['variance']['total_spins'] == 1

    @pytest.mark.parametrize("payload", [{'wager': 'abc'}, {'wager': 0}, {'wager': -3}, {'bet': 1}])
    def test_invalid_wager(self, client, payload):
        response = client.post('/api/engine/spin', json=payload)
        assert response.status_code == 422
        data = response.get_json()
        assert data['status'] is False
        assert data['error_code'] == ErrorCodes.VALIDATION_ERROR
        assert 'wager' in data['details']['errors']
        assert data['request_id']

    def test_wager_above_limit(self, client):
        response = client.post('/api/engine/spin', json={'wager': str(TestingConfig.MAX_WAGER + 1)})
        assert response.status_code == 422
        assert response.get_json()['error_code'] == ErrorCodes.VALIDATION_ERROR

    def test_missing_body(self, client):
        response = client.post('/api/engine/spin', data='not json', content_type='text/plain')
        assert response.status_code == 422
        data = response.get_json()
        assert data['error_code'] == ErrorCodes.VALIDATION_ERROR
        assert data['status_message'] == 'Invalid JSON payload.'


class TestReadEndpoints:

    def test_probabilities(self, client):
        data = client.get('/api/engine/probabilities').get_json()
        assert data['status'] is True
        assert list(data['probabilities'].keys()) == [c.value for c in CATEGORY_ORDER]
        assert sum(data['probabilities'].values()) == pytest.approx(1.0)
        assert data['base_probabilities']['jackpot'] == pytest.approx(0.00057)
        assert data['expected_rtp'] < data['target_rtp']
        assert data['expected_rtp'] + data['expected_cascade_rtp'] == pytest.approx(data['expected_total_rtp'])
        assert data['expected_total_rtp'] == pytest.approx(data['target_rtp'], abs=1e-3)

    def test_variance(self, client):
        data = client.get('/api/engine/variance').get_json()
        assert data['variance']['enabled'] is True
        assert data['variance']['window_fill'] == 0


class TestErrorHandlers:

    def test_not_found(self, client):
        response = client.get('/api/engine/nowhere')
        assert response.status_code == 404
        assert response.get_json()['error_code'] == ErrorCodes.NOT_FOUND

    def test_method_not_allowed(self, client):
        response = client.get('/api/engine/spin')
        assert response.status_code == 405
        assert response.get_json()['error_code'] == ErrorCodes.METHOD_NOT_ALLOWED

    def test_engine_failure_is_internal_error(self):
        engine = MagicMock()
        engine.spin.side_effect = RuntimeError("boom")
        client = create_app(TestingConfig, engine=engine).test_client()

        response = client.post('/api/engine/spin', json={'wager': '1.00'})

        assert response.status_code == 500
        data = response.get_json()
        assert data['error_code'] == ErrorCodes.INTERNAL_SERVER_ERROR
        assert 'boom' not in data['status_message']

    def test_engine_app_exception_passes_through(self):
        engine = MagicMock()
        engine.spin.side_effect = InvalidWagerException(details={'wager': '1.00'})
        client = create_app(TestingConfig, engine=engine).test_client()

        response = client.post('/api/engine/spin', json={'wager': '1.00'})

        assert response.status_code == 422
        data = response.get_json()
        assert data['error_code'] == ErrorCodes.INVALID_BET
        assert data['details'] == {'wager': '1.00'}


class TestSimulateCommand:

    def test_simulate_rtp(self, app):
        result = app.test_cli_runner().invoke(args=['simulate-rtp', '-n', '40', '--seed', '3', '--outcomes-only'])
        assert result.exit_code == 0
        assert 'Simulation Summary' in result.output
        assert 'Total Spins Simulated: 40' in result.output

    def test_rejects_non_positive_spins(self, app):
        result = app.test_cli_runner().invoke(args=['simulate-rtp', '-n', '0'])
        assert 'must be positive' in result.output


class TestAppFactory:

    def test_missing_engine_file_is_configuration_error(self, tmp_path):
        class BrokenConfig(TestingConfig):
            ENGINE_CONFIG_PATH = str(tmp_path / "absent.json")

        with pytest.raises(ConfigurationException) as excinfo:
            create_app(BrokenConfig)
        assert excinfo.value.error_code == ErrorCodes.ENGINE_CONFIG_ERROR
        assert 'absent.json' in excinfo.value.details['reason']

    def test_validation_report_is_stored(self, app):
        report = app.extensions['engine_config_report']
        assert report['is_valid'] is True
        assert report['expected_total_rtp'] == pytest.approx(0.96, abs=1e-3)
        assert report['expected_rtp'] + report['expected_cascade_rtp'] == pytest.approx(report['expected_total_rtp'])

    def test_missing_engine_is_internal_error(self, app):
        del app.extensions['spin_engine']
        response = app.test_client().get('/api/engine/variance')
        assert response.status_code == 500
        data = response.get_json()
        assert data['error_code'] == ErrorCodes.INTERNAL_SERVER_ERROR
        assert data['status_message'] == "Spin engine is not initialised."
