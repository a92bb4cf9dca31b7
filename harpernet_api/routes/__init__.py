from .quiz_results import router as quiz_results_router  # noqa: F401
from .system import router as system_router  # noqa: F401
