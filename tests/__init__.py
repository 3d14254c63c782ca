# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the CarPassionHub auth service:
# - test_auth_lifecycle.py: startup, readiness and session-change ordering
# - test_auth_operations.py: sign-in/up/out and profile edits
# - test_avatar_service.py: avatar upload and reset
# - test_supabase_stores.py: Supabase adapters against a mocked client
# - test_models.py / test_exceptions.py / test_events.py / test_config.py
#
# Run tests with: pytest
# =============================================================================
