"""
Dependent resources of a Backup/ScheduledBackup and their lifecycle.

A deployment is the profile ConfigMap plus the workload (Job or CronJob).
Create submits the ConfigMap first because the workload mounts it by name.
Both create and delete are idempotent: an existing object on create and a
missing object on delete count as success, so a reconcile that failed half
way through can simply be run again.

Names derive from the owner only, so teardown never needs the owner's spec.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from restic_operator.client import CONFIG_MAP, CRON_JOB, JOB, ClusterClient, ResourceKind
from restic_operator.config import DEFAULT_RESTICPROFILE_IMAGE
from restic_operator.errors import ConflictError, NotFoundError
from restic_operator.jobspec import ExecutionTemplate
from restic_operator.models import BackupSpec, ScheduledBackupSpec
from restic_operator.profile import ResticProfileConfig, compose_profile
from restic_operator.templates import ManifestTemplates

module_logger = logging.getLogger(__name__)


class Dependent:
    """
    One object owned by a custom resource, named ``<owner>-<suffix>``
    """

    kind: ResourceKind
    suffix: str
    propagation_policy: Optional[str] = None

    def __init__(self, namespace: str, owner_name: str):
        self.namespace = namespace
        self.owner_name = owner_name
        self.name = f'{owner_name}-{self.suffix}'

    def manifest(self, owner: Mapping[str, Any], labels: Dict[str, str]) -> Dict[str, Any]:
        raise NotImplementedError

    def get(self, client: ClusterClient) -> Optional[Any]:
        return client.get(self.kind, self.namespace, self.name)

    def create(self, client: ClusterClient, owner: Mapping[str, Any], labels: Dict[str, str],
               logger: logging.Logger = module_logger) -> None:
        body = self.manifest(owner, labels)
        try:
            client.create(self.kind, self.namespace, body)
        except ConflictError:
            logger.info(f"{self.kind.kind} {self.namespace}/{self.name} already exists")
            return
        logger.info(f"{self.kind.kind} {self.namespace}/{self.name} created")

    def delete(self, client: ClusterClient, logger: logging.Logger = module_logger) -> None:
        if self.get(client) is None:
            logger.debug(f"{self.kind.kind} {self.namespace}/{self.name} already gone")
            return
        try:
            client.delete(self.kind, self.namespace, self.name, propagation_policy=self.propagation_policy)
        except NotFoundError:
            # Removed between the lookup and the delete
            return
        logger.info(f"{self.kind.kind} {self.namespace}/{self.name} deleted")


class ProfileConfigMap(Dependent):
    kind = CONFIG_MAP
    suffix = 'profile'

    def __init__(self, namespace: str, owner_name: str, spec: Optional[BackupSpec] = None):
        super().__init__(namespace, owner_name)
        self.spec = spec

    @property
    def config(self) -> ResticProfileConfig:
        return compose_profile(self.owner_name, self.spec)

    def manifest(self, owner: Mapping[str, Any], labels: Dict[str, str]) -> Dict[str, Any]:
        return ManifestTemplates.config_map_manifest(
            name=self.name,
            namespace=self.namespace,
            profile=self.config.dumps(),
            owner=owner,
            labels=labels,
        )


class BackupJob(Dependent):
    kind = JOB
    suffix = 'job'
    propagation_policy = 'Background'

    def __init__(self, namespace: str, owner_name: str, spec: Optional[BackupSpec] = None,
                 config_name: Optional[str] = None, default_image: str = DEFAULT_RESTICPROFILE_IMAGE):
        super().__init__(namespace, owner_name)
        self.spec = spec
        self.config_name = config_name
        self.default_image = default_image

    @property
    def template(self) -> ExecutionTemplate:
        return ExecutionTemplate.compose(self.spec, self.config_name, default_image=self.default_image)

    def manifest(self, owner: Mapping[str, Any], labels: Dict[str, str]) -> Dict[str, Any]:
        return ManifestTemplates.job_manifest(
            name=self.name,
            namespace=self.namespace,
            template=self.template,
            owner=owner,
            labels=labels,
        )


class BackupCronJob(Dependent):
    kind = CRON_JOB
    suffix = 'cronjob'
    propagation_policy = 'Background'

    def __init__(self, namespace: str, owner_name: str, spec: Optional[ScheduledBackupSpec] = None,
                 config_name: Optional[str] = None, default_image: str = DEFAULT_RESTICPROFILE_IMAGE):
        super().__init__(namespace, owner_name)
        self.spec = spec
        self.config_name = config_name
        self.default_image = default_image

    @property
    def template(self) -> ExecutionTemplate:
        return ExecutionTemplate.compose(self.spec.backup, self.config_name, default_image=self.default_image)

    @property
    def schedule(self) -> Dict[str, Any]:
        return {
            'schedule': self.spec.schedule,
            'concurrency_policy': self.spec.concurrency_policy,
            'failed_jobs_history_limit': self.spec.failed_jobs_history_limit,
            'starting_deadline_seconds': self.spec.starting_deadline_seconds,
            'successful_jobs_history_limit': self.spec.successful_jobs_history_limit,
            'suspend': self.spec.suspend,
            'time_zone': self.spec.time_zone,
        }

    def manifest(self, owner: Mapping[str, Any], labels: Dict[str, str]) -> Dict[str, Any]:
        return ManifestTemplates.cronjob_manifest(
            name=self.name,
            namespace=self.namespace,
            template=self.template,
            schedule=self.schedule,
            owner=owner,
            labels=labels,
        )


class Deployment:
    """
    The profile ConfigMap and the workload that mounts it
    """

    def __init__(self, profile: ProfileConfigMap, workload: Dependent):
        self.profile = profile
        self.workload = workload

    @classmethod
    def for_backup(cls, namespace: str, name: str, spec: Optional[BackupSpec] = None,
                   default_image: str = DEFAULT_RESTICPROFILE_IMAGE) -> 'Deployment':
        profile = ProfileConfigMap(namespace, name, spec)
        job = BackupJob(namespace, name, spec, profile.name, default_image=default_image)
        return cls(profile, job)

    @classmethod
    def for_scheduled_backup(cls, namespace: str, name: str, spec: Optional[ScheduledBackupSpec] = None,
                             default_image: str = DEFAULT_RESTICPROFILE_IMAGE) -> 'Deployment':
        profile = ProfileConfigMap(namespace, name, spec.backup if spec is not None else None)
        cron_job = BackupCronJob(namespace, name, spec, profile.name, default_image=default_image)
        return cls(profile, cron_job)

    @property
    def dependents(self) -> List[Dependent]:
        return [self.profile, self.workload]

    def missing(self, client: ClusterClient) -> List[Dependent]:
        return [dependent for dependent in self.dependents if dependent.get(client) is None]

    def create(self, client: ClusterClient, owner: Mapping[str, Any], labels: Dict[str, str],
               logger: logging.Logger = module_logger) -> None:
        for dependent in self.dependents:
            dependent.create(client, owner, labels, logger=logger)

    def delete(self, client: ClusterClient, logger: logging.Logger = module_logger) -> None:
        for dependent in self.dependents:
            dependent.delete(client, logger=logger)
