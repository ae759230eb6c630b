import pytest
from django.core.management import call_command

pytestmark = pytest.mark.django_db


def test_models_match_committed_migrations(settings):
    # the test run itself skips migrations, so load the real ones here
    settings.MIGRATION_MODULES = {}
    call_command('makemigrations', 'care', '--check', '--dry-run', verbosity=0)
