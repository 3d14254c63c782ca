# =============================================================================
# app/ - Application Package
# =============================================================================
# Process-wide concerns shared by every layer:
# - config.py: Environment variable loading and settings
# - exceptions.py: Error taxonomy and Supabase error translation
# - logging_config.py: Root logging setup
#
# Business logic lives in the core/ package.
# =============================================================================
