import pytest

from restic_operator import finalizer
from restic_operator.controller import BACKUP
from restic_operator.errors import NotFoundError


def test_add_sets_exactly_the_marker(cluster, backup_body):
    cluster.add(BACKUP, backup_body)

    patched = finalizer.add(cluster, BACKUP, 'default', 'nightly')

    assert patched['metadata']['finalizers'] == [finalizer.FINALIZER]
    assert finalizer.FINALIZER == 'restic.anshulg.com/finalizer'


def test_add_is_idempotent(cluster, backup_body):
    cluster.add(BACKUP, backup_body)

    finalizer.add(cluster, BACKUP, 'default', 'nightly')
    patched = finalizer.add(cluster, BACKUP, 'default', 'nightly')

    assert patched['metadata']['finalizers'] == [finalizer.FINALIZER]


def test_remove_clears_the_list(cluster, backup_body):
    cluster.add(BACKUP, backup_body)
    finalizer.add(cluster, BACKUP, 'default', 'nightly')

    patched = finalizer.remove(cluster, BACKUP, 'default', 'nightly')

    assert 'finalizers' not in patched['metadata']
    assert not finalizer.has_finalizer(patched)


def test_remove_is_idempotent(cluster, backup_body):
    cluster.add(BACKUP, backup_body)

    finalizer.remove(cluster, BACKUP, 'default', 'nightly')
    patched = finalizer.remove(cluster, BACKUP, 'default', 'nightly')

    assert not finalizer.has_finalizer(patched)


def test_patch_on_vanished_resource_fails(cluster):
    with pytest.raises(NotFoundError):
        finalizer.add(cluster, BACKUP, 'default', 'gone')


def test_patch_bodies(cluster, backup_body):
    cluster.add(BACKUP, backup_body)
    seen = []
    original = cluster.patch_merge

    def recording_patch(kind, namespace, name, patch):
        seen.append(patch)
        return original(kind, namespace, name, patch)

    cluster.patch_merge = recording_patch
    finalizer.add(cluster, BACKUP, 'default', 'nightly')
    finalizer.remove(cluster, BACKUP, 'default', 'nightly')

    assert seen == [
        {'metadata': {'finalizers': ['restic.anshulg.com/finalizer']}},
        {'metadata': {'finalizers': None}},
    ]


@pytest.mark.parametrize('finalizers, expected', [
    (None, False),
    ([], False),
    (['other.example.com/finalizer'], False),
    (['other.example.com/finalizer', 'restic.anshulg.com/finalizer'], True),
])
def test_has_finalizer(make_body, finalizers, expected):
    assert finalizer.has_finalizer(make_body(finalizers=finalizers)) is expected
