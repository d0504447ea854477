import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("appointments", "0001_initial"),
    ]

    operations = [
        migrations.RemoveConstraint(
            model_name="sentreminder",
            name="unique_sent_reminder_per_tier",
        ),
        migrations.AddField(
            model_name="sentreminder",
            name="scheduled_for",
            field=models.DateTimeField(default=django.utils.timezone.now),
            preserve_default=False,
        ),
        migrations.AddConstraint(
            model_name="sentreminder",
            constraint=models.UniqueConstraint(
                fields=("reservation_code", "tier", "scheduled_for"), name="unique_sent_reminder_per_slot"
            ),
        ),
    ]
