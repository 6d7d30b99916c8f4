"""
Pod/Job template for the container that runs resticprofile.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from restic_operator.config import DEFAULT_RESTICPROFILE_IMAGE
from restic_operator.models import BackupSpec, ResticProfileSettings
from restic_operator.profile import PASSWORD_FILE_PATH, PROFILE_FILENAME, PROFILE_MOUNT_PATH

CONTAINER_NAME = 'restic-backup'
RESTART_POLICY = 'OnFailure'

PROFILE_VOLUME = 'profile'
PASSWORD_VOLUME = 'restic-password'

REST_USERNAME_ENV = 'RESTIC_REST_USERNAME'
REST_PASSWORD_ENV = 'RESTIC_REST_PASSWORD'


@dataclass(frozen=True)
class ExecutionTemplate:
    image: str
    image_pull_policy: Optional[str] = None
    args: Optional[List[str]] = None
    command: Optional[List[str]] = None
    env: List[Dict[str, Any]] = field(default_factory=list)
    env_from: List[Dict[str, Any]] = field(default_factory=list)
    resources: Optional[Dict[str, Any]] = None
    security_context: Optional[Dict[str, Any]] = None
    affinity: Optional[Dict[str, Any]] = None
    node_selector: Optional[Dict[str, str]] = None
    service_account_name: Optional[str] = None
    volume_mounts: List[Dict[str, Any]] = field(default_factory=list)
    volumes: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def compose(cls, spec: BackupSpec, config_name: str,
                default_image: str = DEFAULT_RESTICPROFILE_IMAGE) -> 'ExecutionTemplate':
        """
        Derive the execution template for a backup

        Args:
            spec: The backup spec
            config_name: Name of the ConfigMap holding the resticprofile configuration
            default_image: Image repository used when the backup does not name an image
        """
        settings = spec.restic_profile or ResticProfileSettings()
        volume_mounts, volumes = resolve_volumes(spec, config_name)

        return cls(
            image=resolve_image(settings, default_image),
            image_pull_policy=settings.image_pull_policy,
            args=list(settings.args) if settings.args is not None else None,
            command=list(settings.command) if settings.command is not None else None,
            env=resolve_env(spec),
            env_from=list(settings.env_from or []),
            resources=settings.resources,
            security_context=settings.security_context,
            affinity=settings.affinity,
            node_selector=settings.node_selector,
            service_account_name=settings.service_account_name,
            volume_mounts=volume_mounts,
            volumes=volumes,
        )

    def container(self) -> Dict[str, Any]:
        container = {
            'name': CONTAINER_NAME,
            'image': self.image,
            'env': self.env,
            'envFrom': self.env_from,
            'volumeMounts': self.volume_mounts,
        }
        optional = {
            'imagePullPolicy': self.image_pull_policy,
            'args': self.args,
            'command': self.command,
            'resources': self.resources,
            'securityContext': self.security_context,
        }
        container.update({key: value for key, value in optional.items() if value is not None})
        return container

    def pod_spec(self) -> Dict[str, Any]:
        pod_spec = {
            'restartPolicy': RESTART_POLICY,
            'containers': [self.container()],
            'volumes': self.volumes,
        }
        optional = {
            'affinity': self.affinity,
            'nodeSelector': self.node_selector,
            'serviceAccountName': self.service_account_name,
        }
        pod_spec.update({key: value for key, value in optional.items() if value is not None})
        return pod_spec

    def job_spec(self) -> Dict[str, Any]:
        return {
            'suspend': False,
            'template': {
                'spec': self.pod_spec(),
            },
        }

    def cron_job_spec(
        self,
        schedule: str,
        concurrency_policy: Optional[str] = None,
        failed_jobs_history_limit: Optional[int] = None,
        starting_deadline_seconds: Optional[int] = None,
        successful_jobs_history_limit: Optional[int] = None,
        suspend: Optional[bool] = None,
        time_zone: Optional[str] = None,
    ) -> Dict[str, Any]:
        spec = {
            'schedule': schedule,
            'jobTemplate': {
                'spec': self.job_spec(),
            },
        }
        passthrough = {
            'concurrencyPolicy': concurrency_policy,
            'failedJobsHistoryLimit': failed_jobs_history_limit,
            'startingDeadlineSeconds': starting_deadline_seconds,
            'successfulJobsHistoryLimit': successful_jobs_history_limit,
            'suspend': suspend,
            'timeZone': time_zone,
        }
        spec.update({key: value for key, value in passthrough.items() if value is not None})
        return spec


def resolve_image(settings: ResticProfileSettings, default_image: str = DEFAULT_RESTICPROFILE_IMAGE) -> str:
    """An explicit image wins; otherwise the default repository tagged with version, or latest."""
    if settings.image is not None:
        return settings.image
    return f"{default_image}:{settings.version or 'latest'}"


def resolve_env(spec: BackupSpec) -> List[Dict[str, Any]]:
    """
    User env first, then the REST credentials when the repository has them.

    Credential vars are appended even if the user declared the same names;
    Kubernetes lets the last declaration win.
    """
    settings = spec.restic_profile or ResticProfileSettings()
    env = [dict(var) for var in settings.env or []]

    credentials = spec.restic.repository.rest_credentials
    if credentials is not None:
        env.append({
            'name': REST_USERNAME_ENV,
            'valueFrom': {'secretKeyRef': credentials.username.to_manifest()},
        })
        env.append({
            'name': REST_PASSWORD_ENV,
            'valueFrom': {'secretKeyRef': credentials.password.to_manifest()},
        })

    return env


def resolve_volumes(spec: BackupSpec, config_name: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """The profile and password mounts, followed by the user's extra volumes verbatim."""
    password = spec.restic.repository.password

    mounts = [
        {
            'name': PROFILE_VOLUME,
            'mountPath': PROFILE_MOUNT_PATH,
            'subPath': PROFILE_FILENAME,
        },
        {
            'name': PASSWORD_VOLUME,
            'mountPath': PASSWORD_FILE_PATH,
            'subPath': password.key,
        },
    ]
    volumes = [
        {
            'name': PROFILE_VOLUME,
            'configMap': {'name': config_name},
        },
        {
            'name': PASSWORD_VOLUME,
            'secret': {'secretName': password.name},
        },
    ]

    if spec.volume is not None:
        mounts.extend(dict(mount) for mount in spec.volume.mounts)
        volumes.extend(dict(volume) for volume in spec.volume.volumes)

    return mounts, volumes
