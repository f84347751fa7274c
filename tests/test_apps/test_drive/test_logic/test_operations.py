"""Tests for namespace mutation operations."""

from io import BytesIO

import pytest
from django.core.exceptions import ValidationError

from server.apps.drive.exceptions import (
    CascadeError,
    DownloadError,
    NameConflictError,
)
from server.apps.drive.logic.namespace import children
from server.apps.drive.logic.operations import (
    create_folder,
    delete_node,
    download_file,
    move_node,
    rename_node,
    replace_file_content,
)


class _ListTarget:
    """Save target remembering what it was given."""

    def __init__(self):
        self.saved = []

    def save(self, filename, content):
        self.saved.append((filename, content))
        return f'/downloads/{filename}'


class TestCreateFolder:
    """Tests for create_folder."""

    def test_listed_exactly_once(self, repository, owner_id):
        """Test a created folder shows up once among its siblings."""
        create_folder(repository, owner_id, 'Reports', '/')

        listed = children(repository.list_by_path(owner_id, '/'), '/')
        assert [(node.name, node.is_folder) for node in listed] == [
            ('Reports', True),
        ]

    def test_name_is_trimmed(self, repository, owner_id):
        """Test surrounding whitespace is not stored."""
        folder = create_folder(repository, owner_id, '  Reports ', '/')

        assert folder.name == 'Reports'
        assert folder.path == '/'

    @pytest.mark.parametrize('name', ['', '   '])
    def test_empty_name_rejected(self, repository, owner_id, name):
        """Test empty names fail without writing anything."""
        with pytest.raises(ValidationError) as exc_info:
            create_folder(repository, owner_id, name, '/')

        assert exc_info.value.messages == ['Folder name cannot be empty.']
        assert repository.list_by_path(owner_id, '/') == []

    def test_sibling_conflict(self, repository, tree, owner_id):
        """Test a name used by a sibling file or folder is rejected."""
        with pytest.raises(NameConflictError):
            create_folder(repository, owner_id, 'top.txt', '/')

    def test_missing_parent(self, repository, owner_id):
        """Test folders cannot be created in a folder that doesn't exist."""
        with pytest.raises(ValidationError, match='does not exist'):
            create_folder(repository, owner_id, 'Child', '/Nowhere')


class TestRenameNode:
    """Tests for rename_node."""

    def test_rename_file(self, repository, tree, owner_id):
        """Test renaming a file changes only its name."""
        renamed = rename_node(repository, tree['/A/x.txt'], 'notes.txt')

        assert renamed.name == 'notes.txt'
        assert renamed.path == '/A'
        assert renamed.blob_ref == tree['/A/x.txt'].blob_ref

    def test_rename_folder_rewrites_descendants(self, repository, tree, owner_id):
        """Test descendant paths follow the renamed folder."""
        renamed = rename_node(repository, tree['/A'], 'B2')

        assert renamed.name == 'B2'
        assert renamed.path == '/'
        assert repository.get(owner_id, tree['/A/x.txt'].id).path == '/B2'
        assert repository.get(owner_id, tree['/A/B'].id).path == '/B2'
        assert repository.get(owner_id, tree['/A/B/y.txt'].id).path == '/B2/B'
        # Prefix sibling untouched
        assert repository.get(owner_id, tree['/AB/z.txt'].id).path == '/AB'

    def test_empty_name_rejected(self, repository, tree):
        """Test the rename validation message."""
        with pytest.raises(ValidationError) as exc_info:
            rename_node(repository, tree['/A'], ' ')

        assert exc_info.value.messages == ['Name cannot be empty.']

    def test_conflict_writes_nothing(self, repository, tree, owner_id):
        """Test renaming onto a sibling's name changes no record."""
        with pytest.raises(NameConflictError):
            rename_node(repository, tree['/A'], 'AB')

        assert repository.get(owner_id, tree['/A/x.txt'].id).path == '/A'

    def test_partial_cascade(self, flaky_repository, tree, owner_id):
        """Test a failed descendant rewrite raises and can be retried."""
        flaky_repository.fail_ids.add(tree['/A/B/y.txt'].id)

        with pytest.raises(CascadeError) as exc_info:
            rename_node(flaky_repository, tree['/A'], 'C')

        result = exc_info.value.result
        assert [failure.write.location for failure in result.failed] == [
            '/A/B/y.txt',
        ]
        assert flaky_repository.get(owner_id, tree['/A/x.txt'].id).path == '/C'

        flaky_repository.fail_ids.clear()
        assert result.remaining().apply(flaky_repository).ok
        assert flaky_repository.get(owner_id, tree['/A/B/y.txt'].id).path == '/C/B'


class TestMoveNode:
    """Tests for move_node."""

    def test_move_folder(self, repository, tree, owner_id):
        """Test moving a folder carries its contents."""
        moved = move_node(repository, tree['/A/B'], '/AB')

        assert moved.location == '/AB/B'
        assert repository.get(owner_id, tree['/A/B/y.txt'].id).path == '/AB/B'

    def test_move_and_rename_file(self, repository, tree):
        """Test moving a file under a new name."""
        moved = move_node(repository, tree['/top.txt'], '/A/B', 'moved.txt')

        assert moved.location == '/A/B/moved.txt'

    def test_move_into_itself(self, repository, tree):
        """Test a folder cannot be moved into its own subtree."""
        with pytest.raises(ValidationError, match='into itself'):
            move_node(repository, tree['/A'], '/A/B')

    def test_move_into_missing_folder(self, repository, tree):
        """Test the destination has to exist."""
        with pytest.raises(ValidationError, match='does not exist'):
            move_node(repository, tree['/top.txt'], '/Missing')


class TestDeleteNode:
    """Tests for delete_node."""

    def test_delete_file(self, repository, blob_store, tree, owner_id):
        """Test one record and exactly one blob are deleted."""
        node = tree['/A/x.txt']

        delete_node(repository, blob_store, node)

        assert [item.name for item in repository.list_by_path(owner_id, '/A')] == ['B']
        assert blob_store.deleted == [node.blob_ref]

    def test_delete_folder_cascades(self, repository, blob_store, tree, owner_id):
        """Test the folder and everything below it are deleted."""
        result = delete_node(repository, blob_store, tree['/A'])

        assert result.ok
        assert repository.list_descendants(owner_id, '/A') == []
        assert [node.name for node in repository.list_by_path(owner_id, '/')] == [
            'AB',
            'top.txt',
        ]
        assert sorted(blob_store.deleted) == sorted([
            tree['/A/x.txt'].blob_ref,
            tree['/A/B/y.txt'].blob_ref,
        ])
        # Prefix sibling survives
        assert repository.get(owner_id, tree['/AB/z.txt'].id)

    def test_blob_failure_does_not_block(self, repository, blob_store, tree, owner_id):
        """Test a failing blob delete leaves the record deleted."""
        blob_store.fail_deletes = True

        delete_node(repository, blob_store, tree['/top.txt'])

        assert repository.find(owner_id, '/', 'top.txt') is None

    def test_partial_delete(self, flaky_repository, blob_store, tree, owner_id):
        """Test a failed record delete keeps the folder for a retry."""
        flaky_repository.fail_ids.add(tree['/A/x.txt'].id)

        with pytest.raises(CascadeError):
            delete_node(flaky_repository, blob_store, tree['/A'])

        assert flaky_repository.find(owner_id, '/', 'A') is not None
        assert tree['/A/x.txt'].blob_ref not in blob_store.deleted


class TestDownloadFile:
    """Tests for download_file."""

    def test_download(self, blob_store, tree):
        """Test content and name are handed to the save target."""
        target = _ListTarget()

        saved = download_file(blob_store, tree['/A/x.txt'], target)

        assert saved == '/downloads/x.txt'
        assert target.saved == [('x.txt', b'content of x.txt')]

    def test_download_folder(self, blob_store, tree):
        """Test folders cannot be downloaded."""
        with pytest.raises(DownloadError, match='is a folder'):
            download_file(blob_store, tree['/A'], _ListTarget())

    def test_download_transport_failure(self, blob_store, tree):
        """Test a fetch failure becomes a download error."""
        blob_store.fail_reads = True

        with pytest.raises(DownloadError, match='failed'):
            download_file(blob_store, tree['/A/x.txt'], _ListTarget())

    def test_download_after_rename(self, repository, blob_store, owner_id):
        """Test a file still downloads after its folder was renamed."""
        folder = create_folder(repository, owner_id, 'A', '/')
        blob_store.blobs['7/abc-x.txt'] = b'hello'
        repository.create_file(
            owner_id,
            'x.txt',
            '/A',
            size_bytes=5,
            mime_type='text/plain',
            blob_ref='7/abc-x.txt',
            download_url='',
        )

        rename_node(repository, folder, 'B')
        moved = repository.find(owner_id, '/B', 'x.txt')
        target = _ListTarget()
        download_file(blob_store, moved, target)

        assert moved.blob_ref == '7/abc-x.txt'
        assert target.saved == [('x.txt', b'hello')]


def test_replace_file_content(repository, blob_store, tree, owner_id):
    """Test new content replaces the old blob."""
    node = tree['/A/x.txt']

    updated = replace_file_content(
        repository,
        blob_store,
        node,
        BytesIO(b'new content'),
    )

    assert updated.blob_ref != node.blob_ref
    assert updated.size_bytes == 11
    assert blob_store.blobs[updated.blob_ref] == b'new content'
    assert blob_store.deleted == [node.blob_ref]
