"""
Invoice Bridge API Tests - Endpoint Integration

Tests the Flask API endpoints.

Run with: pytest tests/test_api.py -v

Note: These tests use Flask's test client against a bridge built over
tmp_path; no server needs to be running.
"""

import sys
import json
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from invoice_bridge import InvoiceBridge
from conftest import build_context, make_generator_root, posix_only


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def bridge(tmp_path):
    make_generator_root(tmp_path / "app")
    return InvoiceBridge(build_context(tmp_path))


@pytest.fixture
def client(bridge):
    """Create a test client for the Flask app."""
    from server import create_app

    app = create_app(bridge)
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


def put_json(client, url, payload):
    return client.put(url, data=json.dumps(payload), content_type='application/json')


def post_json(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type='application/json')


# =============================================================================
# HEALTH
# =============================================================================

class TestHealthEndpoints:

    def test_health(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200

        data = response.get_json()
        assert data['success'] is True
        assert 'timestamp' in data
        assert data['data']['status'] == 'healthy'
        assert data['data']['storage_mode'] == 'database'

    def test_generator_root(self, client, bridge):
        response = client.get('/api/generator')
        assert response.status_code == 200
        assert response.get_json()['data']['root'] == str(bridge.resolve_generator())

    def test_generator_missing(self, tmp_path):
        from server import create_app

        client = create_app(InvoiceBridge(build_context(tmp_path))).test_client()
        response = client.get('/api/generator')

        assert response.status_code == 500
        data = response.get_json()
        assert data['success'] is False
        assert 'Locations checked' in data['error']


# =============================================================================
# SETTINGS
# =============================================================================

class TestSettingsEndpoints:

    def test_get_creates_defaults(self, client, bridge):
        response = client.get('/api/settings')
        assert response.status_code == 200
        assert response.get_json()['data']['outputDirectory'] == str(bridge.context.default_output_dir)

    def test_put_settings(self, client, tmp_path):
        target = tmp_path / "elsewhere"
        response = put_json(client, '/api/settings', {'outputDirectory': str(target)})

        assert response.status_code == 200
        assert target.is_dir()
        assert client.get('/api/settings').get_json()['data']['outputDirectory'] == str(target)

    def test_put_requires_json(self, client):
        response = client.put('/api/settings', data='x', content_type='text/plain')
        assert response.status_code == 400

    def test_first_run(self, client):
        assert client.get('/api/first-run').get_json()['data']['first_run'] is True
        client.get('/api/settings')
        assert client.get('/api/first-run').get_json()['data']['first_run'] is False

    def test_reset_requires_confirmation(self, client):
        response = post_json(client, '/api/reset', {'confirm': 'yes'})
        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_reset(self, client):
        put_json(client, '/api/fields/amount', {'value': '1'})

        response = post_json(client, '/api/reset', {'confirm': 'DELETE DATABASE'})

        assert response.status_code == 200
        assert response.get_json()['data']['first_run'] is False
        assert client.get('/api/fields/amount').get_json()['data']['value'] == '5000.00'


# =============================================================================
# FIELDS
# =============================================================================

class TestFieldEndpoints:

    def test_read_unset_field(self, client):
        response = client.get('/api/fields/amount')
        assert response.status_code == 200
        assert response.get_json()['data'] == {'name': 'amount', 'value': ''}

    def test_write_and_read_field(self, client):
        response = put_json(client, '/api/fields/sender', {'value': 'Acme'})
        assert response.status_code == 200
        assert client.get('/api/fields/sender').get_json()['data']['value'] == 'Acme'

    def test_unknown_field_rejected(self, client):
        response = put_json(client, '/api/fields/bogus', {'value': 'x'})
        assert response.status_code == 400
        assert 'bogus' in response.get_json()['error']

    def test_missing_value_rejected(self, client):
        response = put_json(client, '/api/fields/sender', {})
        assert response.status_code == 400

    def test_non_string_value_rejected(self, client):
        response = put_json(client, '/api/fields/amount', {'value': 12})
        assert response.status_code == 400

    def test_write_all_fields(self, client):
        values = {'sender': 'S', 'bankdetails': 'B', 'description': 'D', 'amount': 'A', 'recipients': 'R'}
        response = put_json(client, '/api/fields', values)

        assert response.status_code == 200
        assert response.get_json()['data'] == values

    def test_invoice_details(self, client):
        response = post_json(client, '/api/invoice-details', {'description': 'Work', 'amount': '10'})
        assert response.status_code == 200

        fields = client.get('/api/fields').get_json()['data']
        assert fields['description'] == 'Work'
        assert fields['amount'] == '10'

    def test_config_value(self, client):
        put_json(client, '/api/config/invoice_counter', {'value': '42'})
        response = client.get('/api/config/invoice_counter')
        assert response.get_json()['data']['value'] == '42'


class TestMalformedRequests:
    """Every failure comes back as the JSON envelope, never an HTML page."""

    @pytest.mark.parametrize('method, url, payload', [
        ('put', '/api/settings', [1]),
        ('post', '/api/reset', 'DELETE DATABASE'),
        ('put', '/api/config/sender', ['Acme']),
        ('put', '/api/fields', [['sender', 'Acme']]),
        ('put', '/api/fields/sender', 'Acme'),
        ('post', '/api/invoice-details', [1, 2]),
        ('post', '/api/generate', [True]),
    ])
    def test_non_object_body_rejected(self, client, method, url, payload):
        response = getattr(client, method)(url, data=json.dumps(payload), content_type='application/json')

        assert response.status_code == 400
        assert response.is_json
        data = response.get_json()
        assert data['success'] is False
        assert 'JSON object' in data['error']

    def test_malformed_json_rejected(self, client):
        response = client.put('/api/settings', data='{not json', content_type='application/json')

        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_reset_string_body_keeps_state(self, client, bridge):
        client.get('/api/settings')
        post_json(client, '/api/reset', 'DELETE DATABASE')
        assert bridge.context.settings_path.exists()

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nope')

        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_wrong_method_is_json(self, client):
        response = client.delete('/api/settings')

        assert response.status_code == 405
        assert response.get_json()['success'] is False

    def test_unexpected_error_is_json(self, client, bridge):
        db_path = bridge.context.db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db_path.write_bytes(b'this is not a sqlite database' * 64)

        response = put_json(client, '/api/fields/amount', {'value': '10'})

        assert response.status_code == 500
        data = response.get_json()
        assert data['success'] is False
        assert data['error'] == 'Internal server error'


# =============================================================================
# GENERATION & INVOICES
# =============================================================================

@posix_only
class TestGenerationEndpoints:

    def test_dry_run(self, client):
        client.get('/api/settings')
        response = post_json(client, '/api/generate', {'dryRun': True})

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['dry_run'] is True
        assert 'Dry run' in data['stdout']

    def test_generate_and_fetch_invoice(self, client):
        client.get('/api/settings')
        response = client.post('/api/generate')
        assert response.status_code == 200
        assert response.get_json()['data']['produced_files'] == ['invoice_001.pdf']

        listing = client.get('/api/invoices').get_json()['data']
        assert listing['count'] == 1
        invoice_id = listing['invoices'][0]['id']

        detail = client.get(f'/api/invoices/{invoice_id}').get_json()['data']
        assert detail['invoice_number'] == 'INV-001'

        pdf = client.get(f'/api/invoices/{invoice_id}/pdf')
        assert pdf.status_code == 200
        assert pdf.mimetype == 'application/pdf'
        assert pdf.data == b'%PDF-1.4 fake'

    def test_generator_failure(self, client, bridge):
        client.get('/api/settings')
        (bridge.resolve_generator() / 'FAIL').write_text('')

        response = client.post('/api/generate')

        assert response.status_code == 502
        assert 'recipients list is empty' in response.get_json()['error']


class TestInvoiceEndpoints:

    def test_empty_list(self, client):
        data = client.get('/api/invoices').get_json()['data']
        assert data == {'invoices': [], 'count': 0}

    def test_unknown_invoice(self, client):
        response = client.get('/api/invoices/123')
        assert response.status_code == 404
        assert response.get_json()['success'] is False
