# Generated manually

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('expenses', '0001_initial'),
        ('settlements', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='payment',
            name='settlement',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='settlements.settlementsession'),
        ),
        migrations.AddIndex(
            model_name='payment',
            index=models.Index(fields=['group', 'settlement'], name='payments_group_settle_idx'),
        ),
    ]
