"""Tests for the HTTP endpoints."""

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import config
from api import app, status_code_for
from audit import AuditLog
from auth import create_admin_token
from lifecycle import (
    LifecycleController, InMemoryLifecycleStore, PersistenceError,
    LifecycleExhaustedError, ValidationError, NotFoundError
)
from pricing import TierClassifier

SECRET = 'test-secret'

@pytest.fixture
def client(monkeypatch, clock, settings, audit_writer):
    """Test client over an in-memory controller."""
    monkeypatch.setattr(config.pricing_settings, 'admin_token_secret', SECRET)
    app.state.settings = settings
    app.state.classifier = TierClassifier.from_settings(settings)
    app.state.controller = LifecycleController(
        store=InMemoryLifecycleStore(),
        audit=AuditLog(writer=audit_writer),
        clock=clock,
        settings=settings
    )
    with TestClient(app) as test_client:
        yield test_client
    del app.state.controller
    del app.state.classifier
    del app.state.settings

@pytest.fixture
def headers():
    token = create_admin_token('admin-1', 'ops@example.com', secret=SECRET)
    return {'Authorization': f'Bearer {token}'}

def test_root(client):
    """Test the service banner."""
    response = client.get('/')
    assert response.status_code == 200
    assert response.json()['name'] == 'Pricing Lifecycle API'

def test_status_requires_token(client):
    """Test that admin routes reject anonymous requests."""
    assert client.get('/admin/lifecycle/status').status_code == 401
    response = client.get(
        '/admin/lifecycle/status',
        headers={'Authorization': 'Bearer not-a-token'}
    )
    assert response.status_code == 401

def test_expired_token_rejected(client):
    """Test an expired admin token."""
    token = create_admin_token('admin-1', secret=SECRET, expires_in=timedelta(seconds=-10))
    response = client.post(
        '/admin/lifecycle/advance',
        headers={'Authorization': f'Bearer {token}'}
    )
    assert response.status_code == 401

def test_token_with_wrong_secret_rejected(client):
    """Test a token signed with another secret."""
    token = create_admin_token('admin-1', secret='other-secret')
    response = client.get(
        '/admin/lifecycle/status',
        headers={'Authorization': f'Bearer {token}'}
    )
    assert response.status_code == 401

def test_status(client, headers):
    """Test the status view after startup seeding."""
    response = client.get('/admin/lifecycle/status', headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body['current_series'] == 1
    assert body['current_phase'] == 1
    assert body['is_paused'] is False
    assert body['time_remaining_seconds'] == 7 * 86400
    assert len(body['phases']) == 20

def test_advance(client, headers):
    """Test advancing through the endpoint."""
    response = client.post('/admin/lifecycle/advance', headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body['phase_number'] == 2
    assert body['version'] == 2

def test_advance_stale_version(client, headers):
    """Test the optimistic version check."""
    response = client.post(
        '/admin/lifecycle/advance',
        json={'expected_version': 99},
        headers=headers
    )
    assert response.status_code == 409
    assert response.json()['error'] == 'state_conflict'

def test_pause_resume(client, headers, clock):
    """Test pause and resume and the double pause conflict."""
    response = client.post('/admin/lifecycle/pause', headers=headers)
    assert response.status_code == 200
    assert response.json()['is_paused'] is True

    response = client.post('/admin/lifecycle/pause', headers=headers)
    assert response.status_code == 409
    assert response.json() == {
        'error': 'state_conflict',
        'detail': 'Phase timer is already paused'
    }

    clock.tick(minutes=10)
    response = client.post('/admin/lifecycle/resume', headers=headers)
    assert response.status_code == 200
    assert response.json()['pause_duration_ms'] == 600000

def test_set_phase_duration(client, headers):
    """Test the duration endpoint and its errors."""
    response = client.put(
        '/admin/lifecycle/phases/2/duration',
        json={'duration_days': 3},
        headers=headers
    )
    assert response.status_code == 200
    assert response.json()['duration_seconds'] == 3 * 86400

    response = client.put(
        '/admin/lifecycle/phases/2/duration',
        json={'duration_days': 0},
        headers=headers
    )
    assert response.status_code == 400
    assert response.json()['error'] == 'validation_error'

    response = client.put(
        '/admin/lifecycle/phases/2/duration',
        json={'duration_days': 10000000},
        headers=headers
    )
    assert response.status_code == 400

    response = client.put(
        '/admin/lifecycle/phases/9/duration',
        json={'duration_days': 3},
        headers=headers
    )
    assert response.status_code == 404
    assert response.json()['error'] == 'not_found'

def test_set_series_growth(client, headers):
    """Test the legacy growth percent endpoint."""
    response = client.put(
        '/admin/lifecycle/series-growth',
        json={'percent': 10},
        headers=headers
    )
    assert response.status_code == 200
    assert Decimal(response.json()['series_growth_percent']) == Decimal('10')

    response = client.put(
        '/admin/lifecycle/series-growth',
        json={'percent': 250},
        headers=headers
    )
    assert response.status_code == 400

def test_record_sale(client, headers):
    """Test recording a sale."""
    response = client.post(
        '/admin/lifecycle/sales',
        json={'amount': '25.00', 'quantity': 2},
        headers=headers
    )
    assert response.status_code == 200
    assert response.json()['sold_count'] == 2

def test_exhausted_lifecycle(client, headers):
    """Test that advancing past the last phase returns lifecycle_exhausted."""
    for _ in range(19):
        assert client.post('/admin/lifecycle/advance', headers=headers).status_code == 200

    response = client.post('/admin/lifecycle/advance', headers=headers)
    assert response.status_code == 409
    assert response.json()['error'] == 'lifecycle_exhausted'

    status = client.get('/admin/lifecycle/status', headers=headers).json()
    assert status['exhausted'] is True

def test_quote(client):
    """Test the public price quote."""
    response = client.get('/pricing/quote', params={'score': 400, 'tier': 'PREMIUM'})
    assert response.status_code == 200
    body = response.json()
    assert Decimal(body['amount']) == Decimal('50.00')
    assert body['display'] == '$50.00'

def test_quote_classifies_score(client):
    """Test quoting without a tier."""
    body = client.get('/pricing/quote', params={'score': 495}).json()
    assert body['tier'] == 'MYTHIC'
    assert Decimal(body['amount']) == Decimal('148.50')

def test_quote_errors(client):
    """Test quote validation."""
    response = client.get('/pricing/quote', params={'score': -5, 'tier': 'STANDARD'})
    assert response.status_code == 400
    response = client.get('/pricing/quote', params={'score': 100, 'tier': 'DIAMOND'})
    assert response.status_code == 404

def test_tiers(client):
    """Test the tier table."""
    body = client.get('/pricing/tiers').json()
    assert [row['tier'] for row in body][0] == 'STANDARD'
    assert len(body) == 6

def test_current_series_is_public(client, headers):
    """Test the public running series view."""
    client.post('/admin/lifecycle/sales', json={'amount': '50.00', 'quantity': 10}, headers=headers)

    response = client.get('/pricing/series')
    assert response.status_code == 200
    body = response.json()
    assert (body['current_series'], body['current_phase']) == (1, 1)
    assert (body['sold_count'], body['total_nfts']) == (10, 100)
    assert (body['phase_sold_count'], body['phase_total_nfts']) == (10, 20)
    assert Decimal(body['sell_through_rate']) == Decimal('0.1')
    assert Decimal(body['projected_next_multiplier']) == Decimal('1.25')
    assert body['trajectory'] == 'DECREASE'
    assert body['time_remaining_seconds'] == 7 * 86400
    assert body['phase_end_date'] is not None
    assert body['is_paused'] is False

def test_error_status_codes():
    """Test the error to status mapping."""
    assert status_code_for(ValidationError('x')) == 400
    assert status_code_for(NotFoundError('x')) == 404
    assert status_code_for(LifecycleExhaustedError('x')) == 409
    assert status_code_for(PersistenceError('x')) == 503
