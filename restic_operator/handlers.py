import threading

import kopf
import kubernetes

from restic_operator.client import ClusterClient
from restic_operator.config import get_config
from restic_operator.controller import (
    BACKUP,
    SCHEDULED_BACKUP,
    Action,
    BackupReconciler,
    OperatorContext,
    Reconciler,
    RequeueAfterError,
    ScheduledBackupReconciler,
)
from restic_operator.errors import InvalidSpecError
from restic_operator.finalizer import FINALIZER

# Timer intervals are fixed when the handlers are registered
HEARTBEAT_INTERVAL = get_config().requeue_interval


def _load_kube_config() -> None:
    try:
        kubernetes.config.load_incluster_config()
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config()


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, logger, **_):
    """
    Configure operator on startup
    """
    config = get_config()

    # Kopf guards the resources with the reconcilers' own marker, so deletion
    # reaches the delete handlers while the marker is still in place
    settings.persistence.finalizer = FINALIZER
    settings.posting.level = config.log_level_number
    settings.execution.max_workers = config.max_workers

    _load_kube_config()

    context = OperatorContext(client=ClusterClient(), config=config)
    memo.backups = BackupReconciler(context)
    memo.scheduled_backups = ScheduledBackupReconciler(context)

    logger.info(f"Starting {config.name} v{config.version}")
    logger.info(f"Watching namespace: {config.namespace or 'all namespaces'}")


def reconcile(reconciler: Reconciler, body, patch, memo: kopf.Memo, logger):
    """
    Run one reconcile and hand the outcome back to Kopf

    Failures become a TemporaryError so Kopf retries after the short delay;
    a spec that does not parse is permanent until the resource changes.
    """
    # Timers run next to the change handlers; ``memo`` is per object
    with memo.setdefault('reconcile_lock', threading.Lock()):
        try:
            result = reconciler.run(body, logger=logger)
        except InvalidSpecError as e:
            logger.error(f"Rejecting {reconciler.kind.kind}: {e}")
            raise kopf.PermanentError(str(e))

    if isinstance(result, RequeueAfterError):
        raise kopf.TemporaryError(result.reason, delay=result.delay)

    if result.action is Action.DELETE:
        # The resource is on its way out; nothing to record
        return None

    for key, value in (result.status or {}).items():
        patch.status[key] = value

    return {
        'action': result.action.value,
        'requeueAfter': result.delay,
    }


@kopf.on.resume(BACKUP.group, BACKUP.version, BACKUP.plural)
@kopf.on.create(BACKUP.group, BACKUP.version, BACKUP.plural)
@kopf.on.update(BACKUP.group, BACKUP.version, BACKUP.plural)
@kopf.on.delete(BACKUP.group, BACKUP.version, BACKUP.plural)
def reconcile_backup(body, patch, memo: kopf.Memo, logger, **kwargs):
    """
    Handler for every change of a Backup resource, including deletion
    """
    return reconcile(memo.backups, body, patch, memo, logger)


@kopf.timer(BACKUP.group, BACKUP.version, BACKUP.plural, interval=HEARTBEAT_INTERVAL)
def heartbeat_backup(body, patch, memo: kopf.Memo, logger, **kwargs):
    """
    Periodic reconcile of a Backup resource
    """
    reconcile(memo.backups, body, patch, memo, logger)


@kopf.on.resume(SCHEDULED_BACKUP.group, SCHEDULED_BACKUP.version, SCHEDULED_BACKUP.plural)
@kopf.on.create(SCHEDULED_BACKUP.group, SCHEDULED_BACKUP.version, SCHEDULED_BACKUP.plural)
@kopf.on.update(SCHEDULED_BACKUP.group, SCHEDULED_BACKUP.version, SCHEDULED_BACKUP.plural)
@kopf.on.delete(SCHEDULED_BACKUP.group, SCHEDULED_BACKUP.version, SCHEDULED_BACKUP.plural)
def reconcile_scheduled_backup(body, patch, memo: kopf.Memo, logger, **kwargs):
    """
    Handler for every change of a ScheduledBackup resource, including deletion
    """
    return reconcile(memo.scheduled_backups, body, patch, memo, logger)


@kopf.timer(SCHEDULED_BACKUP.group, SCHEDULED_BACKUP.version, SCHEDULED_BACKUP.plural, interval=HEARTBEAT_INTERVAL)
def heartbeat_scheduled_backup(body, patch, memo: kopf.Memo, logger, **kwargs):
    """
    Periodic reconcile of a ScheduledBackup resource
    """
    reconcile(memo.scheduled_backups, body, patch, memo, logger)
