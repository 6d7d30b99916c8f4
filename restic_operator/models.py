"""
Typed views of the Backup and ScheduledBackup custom resources.

The CRD schema itself is validated by the API server; these models only give
the reconciler a typed, camelCase-aware handle on the ``spec`` it receives.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from restic_operator.errors import InvalidSpecError

API_GROUP = 'restic.anshulg.com'
API_VERSION = 'v1alpha1'


class CustomResource(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SecretKeySelector(CustomResource):
    """Selects a key of a Secret in the resource's namespace."""

    name: str
    key: str
    optional: Optional[bool] = None

    def to_manifest(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RepositoryType(str, Enum):
    REST = 'rest'
    LOCAL = 'local'
    SFTP = 'sftp'
    S3 = 's3'
    AZURE = 'azure'
    GS = 'gs'
    B2 = 'b2'
    RCLONE = 'rclone'


class RestCredentials(CustomResource):
    username: SecretKeySelector
    password: SecretKeySelector


class Repository(CustomResource):
    type: RepositoryType = RepositoryType.REST
    # Without the type prefix, e.g. https://backup.example.com rather than rest:https://...
    uri: str
    password: SecretKeySelector
    rest_credentials: Optional[RestCredentials] = None

    def full_uri(self) -> str:
        return f'{self.type.value}:{self.uri}'


class Compression(str, Enum):
    OFF = 'off'
    AUTO = 'auto'
    MAX = 'max'


class Retention(CustomResource):
    after_backup: bool = False
    before_backup: bool = False

    keep_last: Optional[int] = Field(default=None, ge=0)
    keep_hourly: Optional[int] = Field(default=None, ge=0)
    keep_daily: Optional[int] = Field(default=None, ge=0)
    keep_weekly: Optional[int] = Field(default=None, ge=0)
    keep_monthly: Optional[int] = Field(default=None, ge=0)
    keep_yearly: Optional[int] = Field(default=None, ge=0)

    prune: bool = False


class BackupOptions(CustomResource):
    exclude: Optional[List[str]] = None
    exclude_caches: bool = False
    exclude_if_present: Optional[List[str]] = None
    exclude_larger_than: Optional[str] = None
    iexclude: Optional[List[str]] = None
    tag: Optional[List[str]] = None


class ResticConfig(CustomResource):
    repository: Repository
    compression: Compression = Compression.AUTO
    # MiB; created pack files may be larger
    pack_size: Optional[int] = Field(default=None, ge=0)
    retention: Optional[Retention] = None
    backup: Optional[BackupOptions] = None


class ResticProfileSettings(CustomResource):
    """Overrides for the pod that runs resticprofile.

    Kubernetes-typed fields (env, resources, affinity, ...) are kept as plain
    mappings and copied into the pod template untouched.
    """

    image: Optional[str] = None
    # Image tag used when ``image`` is not set
    version: Optional[str] = None
    image_pull_policy: Optional[str] = None
    args: Optional[List[str]] = None
    command: Optional[List[str]] = None
    env: Optional[List[Dict[str, Any]]] = None
    env_from: Optional[List[Dict[str, Any]]] = None
    resources: Optional[Dict[str, Any]] = None
    security_context: Optional[Dict[str, Any]] = None
    affinity: Optional[Dict[str, Any]] = None
    node_selector: Optional[Dict[str, str]] = None
    service_account_name: Optional[str] = None


class VolumeBackup(CustomResource):
    mounts: List[Dict[str, Any]] = Field(default_factory=list)
    volumes: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator('mounts')
    @classmethod
    def mounts_have_paths(cls, mounts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        for mount in mounts:
            if not mount.get('name') or not mount.get('mountPath'):
                raise ValueError('every mount needs a name and a mountPath')
        return mounts


class BackupSpec(CustomResource):
    restic: ResticConfig
    restic_profile: Optional[ResticProfileSettings] = None
    volume: Optional[VolumeBackup] = None


class ScheduledBackupSpec(CustomResource):
    schedule: str
    backup: BackupSpec
    concurrency_policy: Optional[str] = None
    failed_jobs_history_limit: Optional[int] = None
    starting_deadline_seconds: Optional[int] = None
    successful_jobs_history_limit: Optional[int] = None
    suspend: Optional[bool] = None
    time_zone: Optional[str] = None


def parse_spec(model: type, spec: Mapping[str, Any]):
    """Parse a custom resource ``spec`` into ``model``, raising InvalidSpecError on mismatch."""
    try:
        return model.model_validate(dict(spec))
    except ValidationError as e:
        raise InvalidSpecError(f"Invalid {model.__name__}: {e}") from e
