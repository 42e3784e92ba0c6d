# =============================================================================
# Django Project Configuration Package
# =============================================================================
# This package contains the Django settings module (config.settings).
# =============================================================================
