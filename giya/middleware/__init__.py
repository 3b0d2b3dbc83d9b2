"""
Middleware package for Giya.
"""
from .auth import (
    require_auth,
    require_role,
    require_admin,
    require_approved_business,
    issue_session_token,
    load_optional_user,
)
from .rate_limit import (
    limiter,
    init_rate_limiter,
    ratelimit_auth,
    ratelimit_api,
    ratelimit_general,
)
from .request_id import init_request_id_tracking
