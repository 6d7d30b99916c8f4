from typing import Dict, Any, Mapping

import kopf

from restic_operator.jobspec import ExecutionTemplate
from restic_operator.profile import PROFILE_FILENAME

LABEL_NAME = 'app.kubernetes.io/name'
LABEL_MANAGED_BY = 'app.kubernetes.io/managed-by'
MANAGED_BY = 'restic-operator'


class ManifestTemplates:
    """
    Templates for Kubernetes manifests used by the operator
    """

    @staticmethod
    def labels(app_name: str) -> Dict[str, str]:
        """
        Labels carried by every dependent resource
        """
        return {
            LABEL_NAME: app_name,
            LABEL_MANAGED_BY: MANAGED_BY,
        }

    @staticmethod
    def adopt(manifest: Dict[str, Any], owner: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Make ``owner`` the controller of ``manifest`` for garbage collection.
        An owner without a uid (not yet persisted) adds no reference.
        """
        if owner.get('metadata', {}).get('uid'):
            kopf.append_owner_reference(manifest, owner=owner)
        return manifest

    @staticmethod
    def metadata(name: str, namespace: str, labels: Dict[str, str]) -> Dict[str, Any]:
        return {
            'name': name,
            'namespace': namespace,
            'labels': dict(labels),
        }

    @staticmethod
    def config_map_manifest(
        name: str,
        namespace: str,
        profile: str,
        owner: Mapping[str, Any],
        labels: Dict[str, str]
    ) -> Dict[str, Any]:
        """
        Generate the ConfigMap holding the rendered resticprofile configuration
        """
        return ManifestTemplates.adopt({
            'apiVersion': 'v1',
            'kind': 'ConfigMap',
            'metadata': ManifestTemplates.metadata(name, namespace, labels),
            'data': {
                PROFILE_FILENAME: profile,
            },
        }, owner)

    @staticmethod
    def job_manifest(
        name: str,
        namespace: str,
        template: ExecutionTemplate,
        owner: Mapping[str, Any],
        labels: Dict[str, str]
    ) -> Dict[str, Any]:
        """
        Generate the Job manifest for a one-shot backup
        """
        return ManifestTemplates.adopt({
            'apiVersion': 'batch/v1',
            'kind': 'Job',
            'metadata': ManifestTemplates.metadata(name, namespace, labels),
            'spec': template.job_spec(),
        }, owner)

    @staticmethod
    def cronjob_manifest(
        name: str,
        namespace: str,
        template: ExecutionTemplate,
        schedule: Dict[str, Any],
        owner: Mapping[str, Any],
        labels: Dict[str, str]
    ) -> Dict[str, Any]:
        """
        Generate the CronJob manifest for a scheduled backup

        ``schedule`` holds the keyword arguments of ExecutionTemplate.cron_job_spec.
        """
        return ManifestTemplates.adopt({
            'apiVersion': 'batch/v1',
            'kind': 'CronJob',
            'metadata': ManifestTemplates.metadata(name, namespace, labels),
            'spec': template.cron_job_spec(**schedule),
        }, owner)
