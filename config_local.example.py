# config_local.example.py
#
# Copy to config_local.py (gitignored) for safe local overrides.
# Secrets belong in .env, not here.

BACKEND = "local"
REFRESH_INTERVAL_SECONDS = 30
