from .body_limit import BodySizeLimitMiddleware  # noqa: F401
from .cors_policy import CORSPolicyMiddleware, OriginPolicy  # noqa: F401
from .error_boundary import ErrorBoundaryMiddleware  # noqa: F401
from .rate_limit import RateLimitMiddleware, SlidingWindowLimiter  # noqa: F401
from .request_logging import RequestLoggingMiddleware  # noqa: F401
from .security_headers import SecurityHeadersMiddleware  # noqa: F401
