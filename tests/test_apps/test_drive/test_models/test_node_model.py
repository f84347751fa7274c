"""Tests for Node model."""

import pytest
from django.db import IntegrityError
from django.utils import timezone

from server.apps.drive.models import Node, NodeKind


def _folder(user, name, path='/'):
    return Node.objects.create(
        owner=user,
        kind=NodeKind.FOLDER,
        name=name,
        path=path,
        last_modified=timezone.now(),
    )


@pytest.mark.django_db
def test_node_str(user):
    """Test Node __str__ method."""
    node = _folder(user, 'Reports', '/Documents')

    assert str(node) == f'{user.id}:/Documents/Reports'


@pytest.mark.django_db
def test_node_location_in_root(user):
    """Test location of a node stored in the root."""
    assert _folder(user, 'Documents').location == '/Documents'


@pytest.mark.django_db
def test_sibling_names_unique(user):
    """Test two siblings cannot share a name."""
    _folder(user, 'Documents')

    with pytest.raises(IntegrityError):
        _folder(user, 'Documents')


@pytest.mark.django_db
def test_same_name_for_other_owner(user, other_user):
    """Test uniqueness is per owner."""
    _folder(user, 'Documents')
    _folder(other_user, 'Documents')

    assert Node.objects.count() == 2


@pytest.mark.django_db
def test_empty_name_rejected(user):
    """Test the empty-name check constraint."""
    with pytest.raises(IntegrityError):
        _folder(user, '')


@pytest.mark.django_db
def test_file_requires_blob(user):
    """Test file rows must reference a blob."""
    with pytest.raises(IntegrityError):
        Node.objects.create(
            owner=user,
            kind=NodeKind.FILE,
            name='a.txt',
            path='/',
            size_bytes=1,
            last_modified=timezone.now(),
        )


@pytest.mark.django_db
def test_nodes_deleted_with_owner(user):
    """Test nodes are deleted when their owner is deleted."""
    _folder(user, 'Documents')

    user.delete()

    assert Node.objects.count() == 0
