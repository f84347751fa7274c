"""Tests for the drive management commands."""

from io import BytesIO, StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from server.apps.drive.infrastructure.repository import DjangoNodeRepository
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.models import Node, NodeKind


def _store_file(user, name, path, content):
    blob_store = get_blob_store()
    blob_key = f'{user.id}/abc-{name}'
    blob_store.upload(blob_key, BytesIO(content), content_type='text/plain')
    return DjangoNodeRepository().create_file(
        user.id,
        name,
        path,
        size_bytes=len(content),
        mime_type='text/plain',
        blob_ref=blob_key,
        download_url=blob_store.retrieval_url(blob_key),
    )


@pytest.mark.django_db
class TestUploadFilesCommand:
    """Tests for upload_files."""

    def test_upload(self, user, mock_s3, tmp_path):
        """Test files become records with progress printed."""
        first = tmp_path / 'a.txt'
        first.write_bytes(b'first file')
        second = tmp_path / 'b.txt'
        second.write_bytes(b'second')
        out = StringIO()

        call_command('upload_files', user.username, str(first), str(second), stdout=out)

        output = out.getvalue()
        assert 'Upload Complete: File "a.txt" has been uploaded.' in output
        assert 'b.txt: 100%' in output
        assert 'Uploaded 2 file(s) to /, 0 failed' in output
        assert set(
            Node.objects.filter(owner=user).values_list('name', flat=True),
        ) == {'a.txt', 'b.txt'}

    def test_upload_into_folder(self, user, mock_s3, tmp_path):
        """Test uploading into a nested folder."""
        DjangoNodeRepository().create_folder(user.id, 'Docs', '/')
        local = tmp_path / 'a.txt'
        local.write_bytes(b'data')

        call_command('upload_files', user.username, str(local), '--path', '/Docs/', stdout=StringIO())

        node = Node.objects.get(owner=user, name='a.txt')
        assert node.path == '/Docs'
        assert node.kind == NodeKind.FILE
        assert get_blob_store().read(node.blob_ref) == b'data'

    def test_missing_folder(self, user, mock_s3, tmp_path):
        """Test a failed upload fails the command."""
        local = tmp_path / 'a.txt'
        local.write_bytes(b'data')
        err = StringIO()

        with pytest.raises(CommandError, match='Failed uploads: a.txt'):
            call_command(
                'upload_files',
                user.username,
                str(local),
                '--path',
                '/Nowhere',
                stdout=StringIO(),
                stderr=err,
            )

        assert 'Upload Failed' in err.getvalue()
        assert not Node.objects.exists()

    def test_unknown_user(self, db, tmp_path):
        """Test the owner has to exist."""
        local = tmp_path / 'a.txt'
        local.write_bytes(b'data')

        with pytest.raises(CommandError, match='Unknown user'):
            call_command('upload_files', 'nobody', str(local))

    def test_missing_local_file(self, user, tmp_path):
        """Test local paths have to be files."""
        with pytest.raises(CommandError, match='Not a file'):
            call_command('upload_files', user.username, str(tmp_path / 'missing.txt'))


@pytest.mark.django_db
class TestDownloadFileCommand:
    """Tests for download_file."""

    def test_download(self, user, mock_s3, tmp_path):
        """Test the file is saved into the output directory."""
        DjangoNodeRepository().create_folder(user.id, 'Docs', '/')
        _store_file(user, 'a.txt', '/Docs', b'hello')
        out = StringIO()

        call_command('download_file', user.username, '/Docs/a.txt', '--output', str(tmp_path), stdout=out)

        assert (tmp_path / 'a.txt').read_bytes() == b'hello'
        assert 'Download Started: Downloading "a.txt".' in out.getvalue()

    def test_download_missing(self, user, mock_s3, tmp_path):
        """Test a missing file fails with a download message."""
        with pytest.raises(CommandError, match='Download Failed'):
            call_command('download_file', user.username, '/missing.txt', '--output', str(tmp_path))

    def test_download_folder(self, user, mock_s3, tmp_path):
        """Test folders cannot be downloaded."""
        DjangoNodeRepository().create_folder(user.id, 'Docs', '/')

        with pytest.raises(CommandError, match='is a folder'):
            call_command('download_file', user.username, '/Docs', '--output', str(tmp_path))

    def test_download_unsafe_location(self, user, tmp_path):
        """Test path traversal is rejected."""
        with pytest.raises(CommandError, match='Invalid location'):
            call_command('download_file', user.username, '/../etc/passwd', '--output', str(tmp_path))


@pytest.mark.django_db
class TestCleanupOrphanedBlobsCommand:
    """Tests for cleanup_orphaned_blobs."""

    def test_deletes_unreferenced_blobs(self, user, mock_s3):
        """Test only blobs without a record are deleted."""
        kept = _store_file(user, 'kept.txt', '/', b'kept')
        blob_store = get_blob_store()
        blob_store.upload(f'{user.id}/orphan-x.txt', BytesIO(b'x'), content_type='text/plain')
        out = StringIO()

        call_command('cleanup_orphaned_blobs', '--min-age', '0', stdout=out)

        assert 'Deleted 1 orphaned blobs, 0 failed' in out.getvalue()
        assert [key for key, _ in blob_store.iter_blobs()] == [kept.blob_ref]

    def test_dry_run(self, user, mock_s3):
        """Test dry run deletes nothing."""
        blob_store = get_blob_store()
        blob_store.upload(f'{user.id}/orphan-x.txt', BytesIO(b'x'), content_type='text/plain')
        out = StringIO()

        call_command('cleanup_orphaned_blobs', '--dry-run', '--min-age', '0', stdout=out)

        assert 'Would delete 1 orphaned blobs' in out.getvalue()
        assert blob_store.exists(f'{user.id}/orphan-x.txt')

    def test_young_blobs_kept(self, user, mock_s3):
        """Test blobs newer than the minimum age are kept."""
        blob_store = get_blob_store()
        blob_store.upload(f'{user.id}/orphan-x.txt', BytesIO(b'x'), content_type='text/plain')
        out = StringIO()

        call_command('cleanup_orphaned_blobs', stdout=out)

        assert 'Deleted 0 orphaned blobs, 0 failed' in out.getvalue()
        assert blob_store.exists(f'{user.id}/orphan-x.txt')

    def test_foreign_keys_untouched(self, user, mock_s3):
        """Test objects outside the owner key space are never deleted."""
        mock_s3.Object('cloud-drive', 'exports/report.csv').put(Body=b'a,b')
        out = StringIO()

        call_command('cleanup_orphaned_blobs', '--min-age', '0', stdout=out)

        assert 'Deleted 0 orphaned blobs, 0 failed' in out.getvalue()
        assert get_blob_store().exists('exports/report.csv')

    def test_owner_scope(self, user, other_user, mock_s3):
        """Test --owner leaves other owners' orphans alone."""
        blob_store = get_blob_store()
        blob_store.upload(f'{user.id}/orphan-x.txt', BytesIO(b'x'), content_type='text/plain')
        blob_store.upload(f'{other_user.id}/orphan-y.txt', BytesIO(b'y'), content_type='text/plain')
        out = StringIO()

        call_command(
            'cleanup_orphaned_blobs',
            '--min-age',
            '0',
            '--owner',
            user.username,
            stdout=out,
        )

        assert 'Deleted 1 orphaned blobs, 0 failed' in out.getvalue()
        assert not blob_store.exists(f'{user.id}/orphan-x.txt')
        assert blob_store.exists(f'{other_user.id}/orphan-y.txt')

    def test_unknown_owner(self, db, mock_s3):
        """Test an unknown --owner is an error."""
        with pytest.raises(CommandError, match='Unknown user'):
            call_command('cleanup_orphaned_blobs', '--owner', 'nobody')
