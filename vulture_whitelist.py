# Vulture whitelist for pytest fixtures and Lambda patterns
# These names are used by pytest/AWS but not explicitly referenced in code

# Lambda entry points (always called by AWS, never by code)
lambda_handler

# Pytest hooks
pytest_configure
pytest_sessionstart

# Pytest fixtures (injected by pytest, not direct calls)
aws
content_table
assets_table
credentials_table
configuration_table
media_bucket
kms_key_id
_mock_env

# Common pytest patterns
tmp_path  # pytest built-in fixture
monkeypatch  # pytest built-in fixture

# Mock attributes (set dynamically in tests)
side_effect
mock_client_cls
