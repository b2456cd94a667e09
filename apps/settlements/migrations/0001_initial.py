# Generated manually

import uuid
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('expenses', '0001_initial'),
        ('groups', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='SettlementSession',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('period_start', models.DateField()),
                ('period_end', models.DateField()),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('pending_payment', 'Pending payment'), ('settled', 'Settled')], default='draft', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('net_transfers', models.JSONField(blank=True, null=True)),
                ('is_zero_settlement', models.BooleanField(default=False)),
                ('payment_reported_at', models.DateTimeField(blank=True, null=True)),
                ('settled_at', models.DateTimeField(blank=True, null=True)),
                ('confirmed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settlement_sessions_confirmed', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settlement_sessions_created', to=settings.AUTH_USER_MODEL)),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='settlement_sessions', to='groups.group')),
                ('payment_reported_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settlement_payments_reported', to=settings.AUTH_USER_MODEL)),
                ('settled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settlement_sessions_settled', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'settlement_sessions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['group', 'status'], name='sessions_group_status_idx'),
                    models.Index(fields=['group', 'period_end'], name='sessions_group_end_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(period_start__lte=models.F('period_end')), name='session_period_ordered'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SettlementEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('description', models.CharField(max_length=100)),
                ('expected_amount', models.PositiveIntegerField(blank=True, null=True)),
                ('actual_amount', models.PositiveIntegerField(blank=True, null=True)),
                ('payment_date', models.DateField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('filled', 'Filled'), ('skipped', 'Skipped')], default='pending', max_length=10)),
                ('split_type', models.CharField(choices=[('equal', 'Equal'), ('custom', 'Custom')], default='equal', max_length=10)),
                ('entry_type', models.CharField(choices=[('rule', 'Recurring rule'), ('manual', 'Manual'), ('existing', 'Existing payment')], default='manual', max_length=10)),
                ('filled_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settlement_entries', to='expenses.category')),
                ('filled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settlement_entries_filled', to=settings.AUTH_USER_MODEL)),
                ('payer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settlement_entries_paid', to=settings.AUTH_USER_MODEL)),
                ('rule', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settlement_entries', to='expenses.recurringrule')),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entries', to='settlements.settlementsession')),
                ('source_payment', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='settlement_entries', to='expenses.payment')),
            ],
            options={
                'db_table': 'settlement_entries',
                'ordering': ['payment_date', 'created_at'],
                'verbose_name_plural': 'settlement entries',
                'indexes': [
                    models.Index(fields=['session', 'status'], name='entries_session_status_idx'),
                    models.Index(fields=['session', 'rule', 'payment_date'], name='entries_session_rule_idx'),
                    models.Index(fields=['source_payment'], name='entries_source_payment_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(actual_amount__isnull=True) | models.Q(actual_amount__gt=0), name='entry_actual_amount_positive'),
                    models.CheckConstraint(condition=~models.Q(status='skipped') | models.Q(actual_amount__isnull=True), name='entry_skipped_has_no_amount'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SettlementEntrySplit',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount', models.PositiveIntegerField()),
                ('entry', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='splits', to='settlements.settlemententry')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='settlement_entry_splits', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'settlement_entry_splits',
                'unique_together': {('entry', 'user')},
            },
        ),
    ]
