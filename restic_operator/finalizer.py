"""
Finalizer handling for the operator's custom resources.

The finalizer is written with merge patches: adding sets the list to exactly
our marker, removing clears the list. Both are idempotent.
"""

from typing import Any, Mapping

from restic_operator.client import ClusterClient, ResourceKind
from restic_operator.models import API_GROUP

FINALIZER = f'{API_GROUP}/finalizer'


def has_finalizer(body: Mapping[str, Any]) -> bool:
    finalizers = body.get('metadata', {}).get('finalizers') or []
    return FINALIZER in finalizers


def add(client: ClusterClient, kind: ResourceKind, namespace: str, name: str) -> Any:
    """Adds the finalizer to the given resource and returns the patched resource."""
    patch = {
        'metadata': {
            'finalizers': [FINALIZER],
        },
    }
    return client.patch_merge(kind, namespace, name, patch)


def remove(client: ClusterClient, kind: ResourceKind, namespace: str, name: str) -> Any:
    """Removes all finalizers from the given resource and returns the patched resource."""
    patch = {
        'metadata': {
            'finalizers': None,
        },
    }
    return client.patch_merge(kind, namespace, name, patch)
