"""
Errors raised while reconciling Backup and ScheduledBackup resources
"""

from typing import Optional

from kubernetes.client.exceptions import ApiException


class ReconcileError(Exception):
    """Base class for everything that aborts a single reconcile"""


class ClusterApiError(ReconcileError):
    """The Kubernetes API rejected or failed a request"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @classmethod
    def from_api_exception(cls, exc: ApiException, action: str) -> 'ClusterApiError':
        if exc.status == 404:
            error_cls = NotFoundError
        elif exc.status == 409:
            error_cls = ConflictError
        else:
            error_cls = ClusterApiError
        return error_cls(f"Kubernetes reported error while trying to {action}: {exc.status} {exc.reason}",
                         status=exc.status)


class NotFoundError(ClusterApiError):
    """The target object does not exist"""


class ConflictError(ClusterApiError):
    """The object already exists"""


class MissingNamespaceError(ReconcileError):
    def __init__(self, name: str):
        super().__init__(f"Namespace not found on resource {name}")
        self.name = name


class SerializationError(ReconcileError):
    """The resticprofile configuration could not be rendered"""


class InvalidSpecError(Exception):
    """The custom resource spec does not match the expected schema"""
