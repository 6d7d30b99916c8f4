"""
resticprofile configuration derived from a BackupSpec.

The document is rendered to TOML and mounted into the backup pod. It is a
pure function of the backup spec: keys are emitted in lexical order so identical
input always produces identical bytes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import tomli_w

from restic_operator.errors import SerializationError
from restic_operator.models import BackupSpec

DEFAULT_PROFILE = 'default'
PROFILE_FILENAME = 'profiles.toml'
PROFILE_MOUNT_PATH = f'/resticprofile/{PROFILE_FILENAME}'
PASSWORD_FILE_PATH = '/resticprofile/password.txt'
CONFIG_FORMAT_VERSION = '1'


def _drop_empty(values: Dict[str, Any], keep: tuple = ()) -> Dict[str, Any]:
    """Omit unset optionals, false flags and empty lists, like resticprofile's own defaults."""
    result = {}
    for key in sorted(values):
        value = values[key]
        if key not in keep and (value is None or value is False or value == []):
            continue
        result[key] = value
    return result


@dataclass(frozen=True)
class BackupSection:
    source: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    exclude_caches: bool = False
    exclude_if_present: List[str] = field(default_factory=list)
    exclude_larger_than: Optional[str] = None
    host: Optional[str] = None
    iexclude: List[str] = field(default_factory=list)
    tag: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({
            'source': list(self.source),
            'exclude': list(self.exclude),
            'exclude-caches': self.exclude_caches,
            'exclude-if-present': list(self.exclude_if_present),
            'exclude-larger-than': self.exclude_larger_than,
            'host': self.host,
            'iexclude': list(self.iexclude),
            'tag': list(self.tag),
        })


@dataclass(frozen=True)
class RetentionSection:
    after_backup: bool = False
    before_backup: bool = False
    # Restrict forget to snapshots of the current host
    host: bool = False
    keep_last: Optional[int] = None
    keep_hourly: Optional[int] = None
    keep_daily: Optional[int] = None
    keep_weekly: Optional[int] = None
    keep_monthly: Optional[int] = None
    keep_yearly: Optional[int] = None
    prune: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({
            'after-backup': self.after_backup,
            'before-backup': self.before_backup,
            'host': self.host,
            'keep-last': self.keep_last,
            'keep-hourly': self.keep_hourly,
            'keep-daily': self.keep_daily,
            'keep-weekly': self.keep_weekly,
            'keep-monthly': self.keep_monthly,
            'keep-yearly': self.keep_yearly,
            'prune': self.prune,
        }, keep=('host',))


@dataclass(frozen=True)
class Profile:
    repository: str
    password_file: str = PASSWORD_FILE_PATH
    compression: Optional[str] = None
    pack_size: Optional[int] = None
    backup: Optional[BackupSection] = None
    retention: Optional[RetentionSection] = None

    def to_dict(self) -> Dict[str, Any]:
        profile = _drop_empty({
            'compression': self.compression,
            'pack-size': self.pack_size,
            'password-file': self.password_file,
            'repository': self.repository,
        })
        # Sub-tables follow the scalar keys
        if self.backup is not None:
            profile['backup'] = self.backup.to_dict()
        if self.retention is not None:
            profile['retention'] = self.retention.to_dict()
        return profile


@dataclass(frozen=True)
class ResticProfileConfig:
    profiles: Dict[str, Profile] = field(default_factory=dict)
    version: str = CONFIG_FORMAT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {'version': self.version}
        for name in sorted(self.profiles):
            document[name] = self.profiles[name].to_dict()
        return document

    def dumps(self) -> str:
        """
        Render the configuration as resticprofile TOML

        Raises:
            SerializationError: If the document cannot be encoded
        """
        try:
            return tomli_w.dumps(self.to_dict())
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Error creating resticprofile config: {e}") from e


def source_paths(spec: BackupSpec) -> List[str]:
    """Every extra volume mounted into the backup pod is a backup source."""
    if spec.volume is None:
        return []
    return [mount['mountPath'] for mount in spec.volume.mounts]


def compose_profile(name: str, spec: BackupSpec) -> ResticProfileConfig:
    """
    Build the resticprofile configuration for a backup

    Args:
        name: Name of the owning Backup/ScheduledBackup, used as the snapshot host
        spec: The backup spec
    """
    restic = spec.restic

    backup = None
    if restic.backup is not None:
        options = restic.backup
        backup = BackupSection(
            source=source_paths(spec),
            exclude=options.exclude or [],
            exclude_caches=options.exclude_caches,
            exclude_if_present=options.exclude_if_present or [],
            exclude_larger_than=options.exclude_larger_than,
            host=name,
            iexclude=options.iexclude or [],
            tag=options.tag or [],
        )

    retention = None
    if restic.retention is not None:
        policy = restic.retention
        retention = RetentionSection(
            after_backup=policy.after_backup,
            before_backup=policy.before_backup,
            keep_last=policy.keep_last,
            keep_hourly=policy.keep_hourly,
            keep_daily=policy.keep_daily,
            keep_weekly=policy.keep_weekly,
            keep_monthly=policy.keep_monthly,
            keep_yearly=policy.keep_yearly,
            prune=policy.prune,
        )

    profile = Profile(
        repository=restic.repository.full_uri(),
        compression=restic.compression.value,
        pack_size=restic.pack_size,
        backup=backup,
        retention=retention,
    )
    return ResticProfileConfig(profiles={DEFAULT_PROFILE: profile})
