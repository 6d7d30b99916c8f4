"""
Reconciliation of Backup and ScheduledBackup resources.

Each reconcile decides one of three actions from the observed object alone:

- DELETE when the object carries a deletion timestamp (always checked first),
- CREATE when our finalizer is missing,
- NOOP otherwise.

CREATE adds the finalizer before any dependent exists; DELETE removes it only
after every dependent is gone. NOOP writes nothing while both dependents exist
and creates whichever is missing otherwise, which completes a create that
failed after the finalizer went on. Errors abort the reconcile and are turned
into a short requeue by ``on_error``.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from restic_operator import finalizer
from restic_operator.client import ClusterClient, ResourceKind
from restic_operator.config import OperatorConfig
from restic_operator.deploy import Deployment
from restic_operator.errors import MissingNamespaceError, ReconcileError
from restic_operator.models import API_GROUP, API_VERSION, BackupSpec, ScheduledBackupSpec, parse_spec
from restic_operator.templates import ManifestTemplates

BACKUP = ResourceKind(API_GROUP, API_VERSION, 'backups', 'Backup')
SCHEDULED_BACKUP = ResourceKind(API_GROUP, API_VERSION, 'scheduled-backups', 'ScheduledBackup')

module_logger = logging.getLogger(__name__)


class Action(enum.Enum):
    # Create the sub-resources for the backup
    CREATE = 'create'
    # Delete the sub-resources for the backup
    DELETE = 'delete'
    NOOP = 'noop'


@dataclass(frozen=True)
class Requeue:
    """Reconcile succeeded; look again after ``delay`` seconds."""
    delay: float
    action: Optional[Action] = None
    # Names of the dependents, set when they were just created
    status: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class RequeueAfterError:
    """Reconcile failed; retry after the shorter ``delay``."""
    delay: float
    reason: str


@dataclass(frozen=True)
class OperatorContext:
    client: ClusterClient
    config: OperatorConfig


def determine_action(body: Mapping[str, Any]) -> Action:
    metadata = body.get('metadata', {})
    if metadata.get('deletionTimestamp') is not None:
        return Action.DELETE
    if not finalizer.has_finalizer(body):
        return Action.CREATE
    return Action.NOOP


class Reconciler:
    """
    Drives one custom resource kind toward its dependent-resource topology
    """

    kind: ResourceKind

    def __init__(self, context: OperatorContext):
        self.context = context

    @property
    def client(self) -> ClusterClient:
        return self.context.client

    @property
    def config(self) -> OperatorConfig:
        return self.context.config

    def deployment(self, namespace: str, name: str, spec: Optional[Mapping[str, Any]] = None) -> Deployment:
        """
        Dependents of the named resource; without ``spec`` only good for teardown

        Raises:
            InvalidSpecError: ``spec`` does not parse
        """
        raise NotImplementedError

    def status(self, deployment: Deployment) -> Dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def identity(body: Mapping[str, Any]):
        metadata = body.get('metadata', {})
        name = metadata.get('name')
        namespace = metadata.get('namespace')
        if not namespace:
            raise MissingNamespaceError(name)
        return namespace, name

    def reconcile(self, body: Mapping[str, Any], logger: logging.Logger = module_logger) -> Requeue:
        """
        Run one reconcile for ``body``

        Raises:
            ReconcileError: The reconcile was aborted; nothing after the failing step ran
        """
        namespace, name = self.identity(body)
        action = determine_action(body)
        logger.debug(f"{self.kind.kind} {namespace}/{name}: {action.value}")

        if action is Action.CREATE:
            # Parsed before the finalizer goes on so a bad spec leaves the object untouched
            deployment = self.deployment(namespace, name, body.get('spec') or {})

            finalizer.add(self.client, self.kind, namespace, name)

            deployment.create(self.client, body, ManifestTemplates.labels(name), logger=logger)
            logger.info(f"Dependents of {self.kind.kind} {namespace}/{name} created")
            return Requeue(delay=self.config.requeue_interval, action=action, status=self.status(deployment))

        if action is Action.DELETE:
            deployment = self.deployment(namespace, name)
            deployment.delete(self.client, logger=logger)

            finalizer.remove(self.client, self.kind, namespace, name)
            logger.info(f"Dependents of {self.kind.kind} {namespace}/{name} deleted, finalizer removed")
            return Requeue(delay=self.config.requeue_interval, action=action)

        if not self.deployment(namespace, name).missing(self.client):
            return Requeue(delay=self.config.requeue_interval, action=action)

        deployment = self.deployment(namespace, name, body.get('spec') or {})
        deployment.create(self.client, body, ManifestTemplates.labels(name), logger=logger)
        logger.info(f"Missing dependents of {self.kind.kind} {namespace}/{name} created")
        return Requeue(delay=self.config.requeue_interval, action=action, status=self.status(deployment))

    def on_error(self, body: Mapping[str, Any], error: Exception,
                 logger: logging.Logger = module_logger) -> RequeueAfterError:
        metadata = body.get('metadata', {})
        logger.error(
            f"Reconciliation error for {self.kind.kind} "
            f"{metadata.get('namespace')}/{metadata.get('name')}: {error!r}. Resource: {dict(body)!r}"
        )
        return RequeueAfterError(delay=self.config.error_requeue_interval, reason=str(error))

    def run(self, body: Mapping[str, Any],
            logger: logging.Logger = module_logger) -> Union[Requeue, RequeueAfterError]:
        try:
            return self.reconcile(body, logger=logger)
        except ReconcileError as e:
            return self.on_error(body, e, logger=logger)


class BackupReconciler(Reconciler):
    kind = BACKUP

    def deployment(self, namespace: str, name: str, spec: Optional[Mapping[str, Any]] = None) -> Deployment:
        backup = parse_spec(BackupSpec, spec) if spec is not None else None
        return Deployment.for_backup(namespace, name, backup, default_image=self.config.default_image)

    def status(self, deployment: Deployment) -> Dict[str, Any]:
        return {
            'phase': 'Pending',
            'configMap': deployment.profile.name,
            'job': deployment.workload.name,
        }


class ScheduledBackupReconciler(Reconciler):
    kind = SCHEDULED_BACKUP

    def deployment(self, namespace: str, name: str, spec: Optional[Mapping[str, Any]] = None) -> Deployment:
        scheduled = parse_spec(ScheduledBackupSpec, spec) if spec is not None else None
        return Deployment.for_scheduled_backup(namespace, name, scheduled, default_image=self.config.default_image)

    def status(self, deployment: Deployment) -> Dict[str, Any]:
        return {
            'configMap': deployment.profile.name,
            'cronJob': deployment.workload.name,
        }
