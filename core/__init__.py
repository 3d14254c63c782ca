# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains framework-agnostic business logic:
# - models/: Pydantic schemas (identity, profile, current user)
# - services/: Auth lifecycle, avatar flow and Supabase-backed stores
# - events.py: Listener channels views subscribe to
#
# Code in this package talks to Supabase only through the stores in
# services/, so the lifecycle logic is testable with in-memory fakes.
# =============================================================================
