import inspect
import json
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

# Ensure the repository root is on sys.path so tests can import the client package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from prms_client.client import PRMSClient
from prms_client.config import ClientSettings
from prms_client.credentials import MemoryCredentialStore
from prms_client.gateway import Gateway


API_BASE = 'http://prms.test/api'
VALID_TOKEN = 'abc'

Override = Callable[[httpx.Request], Any]


def _json_response(status: int, payload: Any) -> httpx.Response:
    return httpx.Response(status, json=payload)


@dataclass
class FakeService:
    """In-process stand-in for the PRMS REST service.

    State persists verbatim between requests, every request is recorded, and
    individual routes can be overridden to simulate failures or slow replies.
    """

    users: Dict[str, str] = field(default_factory=lambda: {'admin': 'secret'})
    tokens: Tuple[str, ...] = (VALID_TOKEN,)
    patients: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    visits: List[Dict[str, Any]] = field(default_factory=list)
    prescriptions: List[Dict[str, Any]] = field(default_factory=list)
    reports: List[Dict[str, Any]] = field(default_factory=list)
    requests: List[httpx.Request] = field(default_factory=list)
    overrides: Dict[Tuple[str, str], Override] = field(default_factory=dict)
    _next_id: int = 100

    def seed(self) -> 'FakeService':
        self.patients = {
            1: {'id': 1, 'name': 'Jane Doe', 'age': 42, 'contact_info': 'jane@example.com'},
            2: {'id': 2, 'name': 'John Roe', 'age': 67, 'contact_info': '555-0102'},
        }
        self.visits = [
            {
                'visit_id': 10,
                'patient_id': 1,
                'visit_date': 'Tue, 05 Mar 2024 00:00:00 GMT',
                'diagnosis': 'Seasonal allergies',
                'doctor': 'Dr. Smith',
            },
            {
                'visit_id': 11,
                'patient_id': 2,
                'visit_date': '2024-04-01',
                'diagnosis': 'Hypertension follow-up',
                'doctor': 'Dr. Smith',
            },
        ]
        self.prescriptions = [
            {
                'prescription_id': 20,
                'patient_id': 1,
                'drug_name': 'Cetirizine',
                'dosage': '10mg',
                'duration': '30 days',
                'doctor': 'Dr. Smith',
                'visit_date': '2024-03-05',
            }
        ]
        self.reports = [
            {
                'report_id': 30,
                'patient_id': 1,
                'report_type': 'Blood Work',
                'report_data': 'CBC within normal limits',
                'created_at': 'Tue, 05 Mar 2024 14:30:00 GMT',
            }
        ]
        return self

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------
    def override(self, method: str, path: str, handler: Override) -> None:
        self.overrides[(method.upper(), '/api' + path)] = handler

    def fail(self, method: str, path: str, status: int = 500, payload: Any = None) -> None:
        body = payload if payload is not None else {'error': 'Internal error'}
        self.override(method, path, lambda request: _json_response(status, body))

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            req
            for req in self.requests
            if (method is None or req.method == method.upper())
            and (path is None or req.url.path == '/api' + path)
        ]

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    # ------------------------------------------------------------------
    # Transport handler
    # ------------------------------------------------------------------
    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key in self.overrides:
            response = self.overrides[key](request)
            if inspect.isawaitable(response):
                response = await response
            return response
        return self._route(request)

    def _route(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path[len('/api'):]
        body = json.loads(request.content) if request.content else None

        if path == '/login' and method == 'POST':
            if self.users.get(body.get('username')) == body.get('password'):
                return _json_response(200, {'access_token': self.tokens[0]})
            return _json_response(401, {'error': 'Invalid credentials'})

        auth = request.headers.get('Authorization', '')
        if auth not in {f'Bearer {token}' for token in self.tokens}:
            return _json_response(401, {'error': 'Token is missing or invalid'})

        if path == '/patients':
            if method == 'GET':
                return _json_response(200, list(self.patients.values()))
            patient = {'id': self._new_id(), **body}
            self.patients[patient['id']] = patient
            return _json_response(201, patient)

        match = re.fullmatch(r'/patients/(\d+)(?:/(visits|prescriptions|reports))?', path)
        if match:
            patient_id = int(match.group(1))
            related = match.group(2)
            if patient_id not in self.patients:
                return _json_response(404, {'error': 'Patient not found'})
            if related:
                rows = getattr(self, related)
                return _json_response(200, [r for r in rows if r['patient_id'] == patient_id])
            if method == 'GET':
                return _json_response(200, self.patients[patient_id])
            if method == 'PUT':
                self.patients[patient_id] = {'id': patient_id, **body}
                return _json_response(200, self.patients[patient_id])
            if method == 'DELETE':
                del self.patients[patient_id]
                return _json_response(200, {'message': 'Patient deleted'})

        if path == '/visits':
            if method == 'GET':
                return _json_response(200, self.visits)
            visit = {
                'visit_id': self._new_id(),
                'patient_id': body['patient_id'],
                'visit_date': '2024-06-01',
                'diagnosis': body['diagnosis'],
                'doctor': f"Doctor #{body['doctor_id']}",
            }
            self.visits.append(visit)
            return _json_response(201, visit)

        if path == '/prescriptions':
            if method == 'GET':
                return _json_response(200, self.prescriptions)
            prescription = {
                'prescription_id': self._new_id(),
                'patient_id': body['patient_id'],
                'drug_name': body['drug_name'],
                'dosage': body['dosage'],
                'duration': body['duration'],
                'doctor': f"Doctor #{body['doctor_id']}",
                'visit_date': '2024-06-01',
            }
            self.prescriptions.append(prescription)
            return _json_response(201, prescription)

        if path == '/reports':
            if method == 'GET':
                return _json_response(200, self.reports)
            report = {
                'report_id': self._new_id(),
                'patient_id': body['patient_id'],
                'report_type': body['report_type'],
                'report_data': body['report_data'],
                'created_at': '2024-06-01T09:15:00Z',
            }
            self.reports.append(report)
            return _json_response(201, report)

        return _json_response(404, {'error': 'Not found'})


@pytest.fixture
def service() -> FakeService:
    return FakeService().seed()


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(api_base=API_BASE, default_doctor_id=7)


@pytest.fixture
def credentials() -> MemoryCredentialStore:
    return MemoryCredentialStore(VALID_TOKEN)


@pytest.fixture
def navigations() -> List[str]:
    return []


@pytest.fixture
def gateway(service, settings, credentials, navigations) -> Gateway:
    return Gateway(
        settings,
        credentials,
        navigate=navigations.append,
        transport=httpx.MockTransport(service.handler),
    )


@pytest.fixture
def client(service, settings, credentials, navigations) -> PRMSClient:
    return PRMSClient(
        settings,
        credentials,
        navigate=navigations.append,
        transport=httpx.MockTransport(service.handler),
    )
