#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_routes
    ~~~~~~~~~~~~~~~~~

    HTTP boundary for the waitlist engine.

    :copyright: (c) 2025 by Authors.
    :license: see LICENSE for more details.
"""

import pytest
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient
from admissions.app import app
from admissions.core.api import AdmissionsAPI
from admissions.core.exceptions import TransactionConflictError, UpstreamUnavailableError
from admissions.routes.api import get_api
from tests.conftest import positions

PREFIX = "/v1/api/waitlist"


@pytest.fixture
def api(db_session, seed):
    seed.classroom(program='toddler', capacity=6, enrolled=5)
    seed.waitlist(3)
    return AdmissionsAPI.from_session(db_session)


@pytest.fixture
def client(api):
    app.dependency_overrides[get_api] = lambda: api
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_get_queue(client):
    response = client.get(PREFIX)
    assert response.status_code == 200
    data = response.json()
    assert [e['id'] for e in data['entries']] == ['e1', 'e2', 'e3']
    assert data['entries'][0]['program_position'] == '1 of 3'
    assert data['capacity_by_program'] == {'toddler': {'capacity': 6, 'enrolled': 5, 'available': 1}}
    assert data['stats'] == {'total_waitlisted': 3, 'total_schools': 1}
    assert data['pagination'] == {'page': 1, 'limit': 100, 'total': 3, 'total_pages': 1}


def test_get_queue_filters(client):
    client.patch(f"{PREFIX}/e2/status", json={"status": "contacted"})
    response = client.get(PREFIX, params={"status": "contacted", "school_ids": "s1, s2"})
    assert [e['id'] for e in response.json()['entries']] == ['e2']

    response = client.get(PREFIX, params={"limit": 2, "page": 2})
    assert [e['id'] for e in response.json()['entries']] == ['e3']

    assert client.get(PREFIX, params={"limit": 501}).status_code == 422


def test_get_queue_sorted(client, api):
    with api.store.transaction('s1', 'toddler'):
        api.store.update_fields('e1', {'priority_score': 20})
        api.store.update_fields('e3', {'priority_score': 90})

    response = client.get(PREFIX, params={"sort_by": "priority", "sort_order": "desc"})
    assert [e['id'] for e in response.json()['entries']] == ['e3', 'e1', 'e2']

    response = client.get(PREFIX, params={"sort_by": "position", "sort_order": "desc", "program": "TODD"})
    assert [e['id'] for e in response.json()['entries']] == ['e3', 'e2', 'e1']

    assert client.get(PREFIX, params={"sort_by": "name"}).status_code == 422
    assert client.get(PREFIX, params={"sort_order": "up"}).status_code == 422


def test_count_waitlist(client):
    client.patch(f"{PREFIX}/e2/status", json={"status": "declined"})
    assert client.get(f"{PREFIX}/count").json() == {'count': 3}
    assert client.get(f"{PREFIX}/count", params={"status": "declined"}).json() == {'count': 1}
    assert client.get(f"{PREFIX}/count", params={"school_id": "s2"}).json() == {'count': 0}
    assert client.get(f"{PREFIX}/count", params={"status": "lost"}).status_code == 400


def test_startup_initializes_database():
    with patch('admissions.core.db.init') as init:
        with TestClient(app):
            init.assert_called_once_with()


def test_parent_view(client):
    response = client.get(f"{PREFIX}/parent", params={"email": "PARENT2@example.com"})
    assert response.status_code == 200
    [row] = response.json()
    assert row['id'] == 'e2'
    assert row['position'] == 1
    assert row['estimated_time'] == '1-2 weeks'

    assert client.get(f"{PREFIX}/parent", params={"email": " "}).status_code == 404


def test_enqueue(client, seed):
    lead = seed.lead()
    response = client.post(PREFIX, json={"lead_id": lead.id})
    assert response.status_code == 201
    assert response.json()['waitlist_position'] == 4
    assert response.json()['status'] == 'waitlisted'

    assert client.post(PREFIX, json={"lead_id": lead.id}).status_code == 409
    assert client.post(PREFIX, json={"lead_id": "lead-missing"}).status_code == 404


def test_reorder(client, api):
    response = client.patch(f"{PREFIX}/e3/position", json={"position": 1})
    assert response.status_code == 200
    assert response.json()['waitlist_position'] == 1
    assert positions(api.store) == {'e3': 1, 'e1': 2, 'e2': 3}


def test_reorder_errors(client, api):
    assert client.patch(f"{PREFIX}/e3/position", json={"position": 4}).status_code == 400
    assert client.patch(f"{PREFIX}/e3/position", json={"position": 0}).status_code == 422
    assert client.patch(f"{PREFIX}/nope/position", json={"position": 1}).status_code == 404
    assert positions(api.store) == {'e1': 1, 'e2': 2, 'e3': 3}


def test_update_status(client, api):
    response = client.patch(f"{PREFIX}/e1/status", json={"status": "enrolled"})
    assert response.status_code == 200
    assert response.json()['status'] == 'enrolled'
    assert positions(api.store) == {'e2': 2, 'e3': 3}

    assert client.patch(f"{PREFIX}/e1/status", json={"status": "archived"}).status_code == 422
    assert client.patch(f"{PREFIX}/nope/status", json={"status": "toured"}).status_code == 404


def test_update_entry(client):
    response = client.patch(f"{PREFIX}/e1", json={"notes": "Needs a tour", "priority_score": 7})
    assert response.status_code == 200
    assert response.json()['notes'] == 'Needs a tour'
    assert response.json()['priority_score'] == 70

    response = client.patch(f"{PREFIX}/e1", json={"priority_score": 2})
    assert response.json()['notes'] == 'Needs a tour'
    assert response.json()['priority_score'] == 20

    response = client.patch(f"{PREFIX}/e1", json={"notes": None})
    assert response.json()['notes'] is None
    assert response.json()['priority_score'] == 20

    assert client.patch(f"{PREFIX}/e1", json={"priority_score": 11}).status_code == 422


def test_priority_and_analysis(client, api):
    response = client.post(f"{PREFIX}/e1/analysis", json={"priority_hint": "high"})
    assert response.status_code == 200
    analysis = response.json()
    assert analysis['priority_score'] == 80
    assert analysis['label'] == 'High'
    assert 'Prioritize outreach due to high lead priority.' in analysis['recommendations']
    assert api.store.get('e1').priority_score == 0

    response = client.post(f"{PREFIX}/e1/priority", json={})
    assert response.status_code == 200
    assert response.json()['priority_score'] == 60


@pytest.mark.parametrize("error,code", [
    (TransactionConflictError("busy"), 409),
    (UpstreamUnavailableError("lead lookup failed"), 503),
])
def test_error_mapping(error, code):
    api = MagicMock()
    api.reorder.side_effect = error
    app.dependency_overrides[get_api] = lambda: api
    try:
        response = TestClient(app).patch(f"{PREFIX}/e1/position", json={"position": 1})
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == code
    assert response.json()['detail'] == str(error)
