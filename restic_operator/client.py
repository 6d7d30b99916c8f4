"""
Thin wrapper over the Kubernetes API used by the reconcilers.

Lookups return None for missing objects; every other failure is raised as a
ClusterApiError so callers decide what "not found" means for them.
"""

from typing import Any, Dict, NamedTuple, Optional

import kubernetes
from kubernetes.client.exceptions import ApiException

from restic_operator.errors import ClusterApiError

MERGE_PATCH = 'application/merge-patch+json'


class ResourceKind(NamedTuple):
    group: str
    version: str
    plural: str
    kind: str

    @property
    def api_version(self) -> str:
        return f'{self.group}/{self.version}' if self.group else self.version


CONFIG_MAP = ResourceKind('', 'v1', 'configmaps', 'ConfigMap')
JOB = ResourceKind('batch', 'v1', 'jobs', 'Job')
CRON_JOB = ResourceKind('batch', 'v1', 'cronjobs', 'CronJob')


class ClusterClient:
    """
    CRUD + merge-patch access keyed by kind, namespace and name
    """

    def __init__(self, api_client: Optional[kubernetes.client.ApiClient] = None):
        self.core_v1 = kubernetes.client.CoreV1Api(api_client)
        self.batch_v1 = kubernetes.client.BatchV1Api(api_client)
        self.custom_objects = kubernetes.client.CustomObjectsApi(api_client)

        self._builtin = {
            CONFIG_MAP.kind: {
                'read': self.core_v1.read_namespaced_config_map,
                'create': self.core_v1.create_namespaced_config_map,
                'delete': self.core_v1.delete_namespaced_config_map,
                'patch': self.core_v1.patch_namespaced_config_map,
            },
            JOB.kind: {
                'read': self.batch_v1.read_namespaced_job,
                'create': self.batch_v1.create_namespaced_job,
                'delete': self.batch_v1.delete_namespaced_job,
                'patch': self.batch_v1.patch_namespaced_job,
            },
            CRON_JOB.kind: {
                'read': self.batch_v1.read_namespaced_cron_job,
                'create': self.batch_v1.create_namespaced_cron_job,
                'delete': self.batch_v1.delete_namespaced_cron_job,
                'patch': self.batch_v1.patch_namespaced_cron_job,
            },
        }

    def _is_builtin(self, kind: ResourceKind) -> bool:
        return kind.kind in self._builtin

    def get(self, kind: ResourceKind, namespace: str, name: str) -> Optional[Any]:
        """
        Read an object

        Returns:
            The object, or None if it does not exist
        """
        try:
            if self._is_builtin(kind):
                return self._builtin[kind.kind]['read'](name=name, namespace=namespace)
            return self.custom_objects.get_namespaced_custom_object(
                group=kind.group, version=kind.version, namespace=namespace, plural=kind.plural, name=name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise ClusterApiError.from_api_exception(e, f'get {kind.kind} {namespace}/{name}') from e

    def create(self, kind: ResourceKind, namespace: str, body: Dict[str, Any]) -> Any:
        name = body.get('metadata', {}).get('name')
        try:
            if self._is_builtin(kind):
                return self._builtin[kind.kind]['create'](namespace=namespace, body=body)
            return self.custom_objects.create_namespaced_custom_object(
                group=kind.group, version=kind.version, namespace=namespace, plural=kind.plural, body=body)
        except ApiException as e:
            raise ClusterApiError.from_api_exception(e, f'create {kind.kind} {namespace}/{name}') from e

    def delete(self, kind: ResourceKind, namespace: str, name: str,
               propagation_policy: Optional[str] = None) -> Any:
        try:
            if self._is_builtin(kind):
                kwargs = {'propagation_policy': propagation_policy} if propagation_policy else {}
                return self._builtin[kind.kind]['delete'](name=name, namespace=namespace, **kwargs)
            return self.custom_objects.delete_namespaced_custom_object(
                group=kind.group, version=kind.version, namespace=namespace, plural=kind.plural, name=name)
        except ApiException as e:
            raise ClusterApiError.from_api_exception(e, f'delete {kind.kind} {namespace}/{name}') from e

    def patch_merge(self, kind: ResourceKind, namespace: str, name: str, patch: Dict[str, Any]) -> Any:
        """
        Apply a JSON merge patch (RFC 7386); ``None`` values delete the field
        """
        try:
            if self._is_builtin(kind):
                return self._builtin[kind.kind]['patch'](
                    name=name, namespace=namespace, body=patch, _content_type=MERGE_PATCH)
            return self.custom_objects.patch_namespaced_custom_object(
                group=kind.group, version=kind.version, namespace=namespace, plural=kind.plural, name=name,
                body=patch, _content_type=MERGE_PATCH)
        except ApiException as e:
            raise ClusterApiError.from_api_exception(e, f'patch {kind.kind} {namespace}/{name}') from e
