"""
Root pytest configuration for the Django project.

Settings and the import path come from [tool.pytest.ini_options] in
pyproject.toml. Test-only settings overrides live in app/conftest.py and
app-specific fixtures in each app's tests/conftest.py.
"""

import os

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
