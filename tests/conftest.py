import copy
import logging
from typing import Any, Dict, Optional

import pytest

from restic_operator.config import OperatorConfig
from restic_operator.controller import BACKUP, SCHEDULED_BACKUP, OperatorContext
from restic_operator.errors import ClusterApiError, ConflictError, NotFoundError
from restic_operator.finalizer import FINALIZER


def _merge(target: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


class FakeClusterClient:
    """
    In-memory stand-in for ClusterClient.

    ``fail(op, kind_name, ...)`` makes the next matching call raise. Every
    mutation appends a snapshot of all objects to ``history``.
    """

    def __init__(self):
        self.objects: Dict[tuple, Dict[str, Any]] = {}
        self.calls = []
        self.history = []
        self._failures = []

    def add(self, kind, body: Dict[str, Any]) -> None:
        metadata = body['metadata']
        self.objects[(kind.kind, metadata['namespace'], metadata['name'])] = copy.deepcopy(body)

    def fail(self, op: str, kind_name: str, error: Optional[Exception] = None, times: int = 1) -> None:
        error = error or ClusterApiError(f"{op} {kind_name} failed", status=500)
        self._failures.append([op, kind_name, error, times])

    def find(self, kind_name: str, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        return self.objects.get((kind_name, namespace, name))

    def kinds(self, kind_name: str):
        return [body for (kind, _, _), body in self.objects.items() if kind == kind_name]

    def _call(self, op: str, kind, namespace: str, name: str) -> None:
        self.calls.append((op, kind.kind, namespace, name))
        for failure in self._failures:
            if failure[0] == op and failure[1] == kind.kind and failure[3] > 0:
                failure[3] -= 1
                raise failure[2]

    def _snapshot(self) -> None:
        self.history.append(copy.deepcopy(self.objects))

    def get(self, kind, namespace, name):
        self._call('get', kind, namespace, name)
        body = self.objects.get((kind.kind, namespace, name))
        return copy.deepcopy(body) if body is not None else None

    def create(self, kind, namespace, body):
        name = body['metadata']['name']
        self._call('create', kind, namespace, name)
        if (kind.kind, namespace, name) in self.objects:
            raise ConflictError(f"{kind.kind} {namespace}/{name} already exists", status=409)
        self.objects[(kind.kind, namespace, name)] = copy.deepcopy(body)
        self._snapshot()
        return copy.deepcopy(body)

    def delete(self, kind, namespace, name, propagation_policy=None):
        self._call('delete', kind, namespace, name)
        if (kind.kind, namespace, name) not in self.objects:
            raise NotFoundError(f"{kind.kind} {namespace}/{name} not found", status=404)
        del self.objects[(kind.kind, namespace, name)]
        self._snapshot()

    def patch_merge(self, kind, namespace, name, patch):
        self._call('patch', kind, namespace, name)
        body = self.objects.get((kind.kind, namespace, name))
        if body is None:
            raise NotFoundError(f"{kind.kind} {namespace}/{name} not found", status=404)
        _merge(body, patch)
        self._snapshot()
        return copy.deepcopy(body)


@pytest.fixture
def cluster() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture
def operator_config() -> OperatorConfig:
    return OperatorConfig(log_level='INFO')


@pytest.fixture
def context(cluster, operator_config) -> OperatorContext:
    return OperatorContext(client=cluster, config=operator_config)


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger('tests')


@pytest.fixture
def backup_spec() -> Dict[str, Any]:
    """A REST repository with credentials, no retention and no extra volumes."""
    return {
        'restic': {
            'repository': {
                'type': 'rest',
                'uri': 'https://example.com',
                'password': {'name': 'restic-password', 'key': 'password.txt'},
                'restCredentials': {
                    'username': {'name': 'restic-secret', 'key': 'username'},
                    'password': {'name': 'restic-secret', 'key': 'password'},
                },
            },
        },
    }


@pytest.fixture
def scheduled_backup_spec(backup_spec) -> Dict[str, Any]:
    return {
        'schedule': '0 3 * * *',
        'concurrencyPolicy': 'Forbid',
        'successfulJobsHistoryLimit': 2,
        'failedJobsHistoryLimit': 1,
        'suspend': False,
        'timeZone': 'Europe/Berlin',
        'backup': backup_spec,
    }


@pytest.fixture
def make_body():
    def _make_body(kind=BACKUP, name='nightly', namespace='default', spec=None,
                   finalizers=None, deletion_timestamp=None, uid='1234-abcd'):
        metadata = {'name': name, 'uid': uid}
        if namespace is not None:
            metadata['namespace'] = namespace
        if finalizers is not None:
            metadata['finalizers'] = list(finalizers)
        if deletion_timestamp is not None:
            metadata['deletionTimestamp'] = deletion_timestamp
        return {
            'apiVersion': kind.api_version,
            'kind': kind.kind,
            'metadata': metadata,
            'spec': spec if spec is not None else {},
        }
    return _make_body


@pytest.fixture
def backup_body(make_body, backup_spec):
    return make_body(kind=BACKUP, spec=backup_spec)


@pytest.fixture
def scheduled_backup_body(make_body, scheduled_backup_spec):
    return make_body(kind=SCHEDULED_BACKUP, name='weekly', spec=scheduled_backup_spec)


@pytest.fixture
def finalized():
    """Marks a body the way the API server shows it after the finalizer was added."""
    def _finalized(body, deletion_timestamp=None):
        body = copy.deepcopy(body)
        body['metadata']['finalizers'] = [FINALIZER]
        if deletion_timestamp is not None:
            body['metadata']['deletionTimestamp'] = deletion_timestamp
        return body
    return _finalized
