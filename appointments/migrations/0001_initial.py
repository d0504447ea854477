from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SentReminder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("reservation_code", models.CharField(max_length=64)),
                (
                    "tier",
                    models.CharField(
                        choices=[
                            ("24h", "24 hours before"),
                            ("12h", "12 hours before"),
                            ("15min", "15 minutes before"),
                        ],
                        max_length=10,
                    ),
                ),
                ("email_sent", models.BooleanField(default=False)),
                ("chat_sent", models.BooleanField(default=False)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="sentreminder",
            constraint=models.UniqueConstraint(
                fields=("reservation_code", "tier"), name="unique_sent_reminder_per_tier"
            ),
        ),
    ]
