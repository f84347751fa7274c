import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Node',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('folder', 'Folder'), ('file', 'File')], max_length=16)),
                ('name', models.CharField(max_length=255)),
                ('path', models.CharField(help_text='Location of the parent folder, e.g. /Documents', max_length=1024)),
                ('size_bytes', models.BigIntegerField(blank=True, help_text='File size in bytes', null=True)),
                ('mime_type', models.CharField(blank=True, default='', max_length=255)),
                ('blob_ref', models.CharField(blank=True, default='', help_text='Blob storage key: {owner_id}/{random}-{filename}', max_length=1024)),
                ('download_url', models.CharField(blank=True, default='', max_length=2048)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('last_modified', models.DateTimeField()),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='drive_nodes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Node',
                'verbose_name_plural': 'Nodes',
                'ordering': ['path', 'name'],
                'indexes': [models.Index(fields=['owner', 'path'], name='drive_node_owner_path_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('owner', 'path', 'name'), name='drive_node_sibling_unique'),
                    models.CheckConstraint(condition=models.Q(('name', ''), _negated=True), name='drive_node_name_not_empty'),
                    models.CheckConstraint(condition=models.Q(('kind', 'folder'), models.Q(('blob_ref', ''), _negated=True), _connector='OR'), name='drive_file_has_blob'),
                ],
            },
        ),
    ]
