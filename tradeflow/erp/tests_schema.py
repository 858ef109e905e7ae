from io import StringIO

from django.core.management import call_command
from django.test import TestCase


class MigrationStateTest(TestCase):
    def test_models_match_migrations(self):
        out = StringIO()
        try:
            call_command("makemigrations", "erp", "--check", "--dry-run", stdout=out)
        except SystemExit:
            self.fail(f"erp models have changes without a migration:\n{out.getvalue()}")
