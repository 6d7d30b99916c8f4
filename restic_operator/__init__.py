"""
Restic Operator for Kubernetes

This operator watches Backup and ScheduledBackup custom resources and turns
each of them into a resticprofile configuration (ConfigMap) plus the Job or
CronJob that runs resticprofile with it.
"""

__version__ = "0.1.0"

# Importing the handlers registers them with Kopf
from restic_operator.handlers import (
    configure,
    heartbeat_backup,
    heartbeat_scheduled_backup,
    reconcile_backup,
    reconcile_scheduled_backup,
)
from restic_operator.controller import BackupReconciler, ScheduledBackupReconciler
from restic_operator.config import OperatorConfig

__all__ = [
    'configure',
    'heartbeat_backup',
    'heartbeat_scheduled_backup',
    'reconcile_backup',
    'reconcile_scheduled_backup',
    'BackupReconciler',
    'ScheduledBackupReconciler',
    'OperatorConfig',
]
