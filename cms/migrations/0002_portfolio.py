import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("cms", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PortfolioProject",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("slug", models.SlugField(max_length=280, unique=True)),
                ("client_name", models.CharField(blank=True, max_length=150)),
                (
                    "category",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("vitrine", "Site vitrine"),
                            ("ecommerce", "E-commerce"),
                            ("webapp", "Application web"),
                            ("maintenance", "Maintenance"),
                        ],
                        max_length=20,
                    ),
                ),
                ("summary", models.TextField(blank=True)),
                ("description", models.TextField(blank=True)),
                ("project_url", models.URLField(blank=True, max_length=500)),
                ("technologies", models.JSONField(blank=True, default=list)),
                ("completed_at", models.DateField(blank=True, null=True)),
                ("is_published", models.BooleanField(default=False)),
                ("is_featured", models.BooleanField(default=False)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Portfolio Project",
                "verbose_name_plural": "Portfolio Projects",
                "ordering": ["display_order", "-completed_at", "-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PortfolioImage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("image_key", models.CharField(max_length=500)),
                ("image_url", models.URLField(max_length=1000)),
                ("thumbnail_url", models.URLField(blank=True, max_length=1000)),
                ("medium_url", models.URLField(blank=True, max_length=1000)),
                ("alt_text", models.CharField(blank=True, max_length=255)),
                ("caption", models.CharField(blank=True, max_length=500)),
                ("is_featured", models.BooleanField(default=False)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "project",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="images",
                        to="cms.portfolioproject",
                    ),
                ),
            ],
            options={
                "ordering": ["display_order", "id"],
                "indexes": [
                    models.Index(fields=["project", "display_order"], name="portfolio_image_order_idx")
                ],
            },
        ),
        migrations.AddField(
            model_name="testimonial",
            name="portfolio_project",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="testimonials",
                to="cms.portfolioproject",
            ),
        ),
    ]
