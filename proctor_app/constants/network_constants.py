"""Network configuration constants for the quiz service."""

import os

DEFAULT_HOST: str = os.getenv("PROCTOR_HOST", "0.0.0.0")
DEFAULT_PORT: int = int(os.getenv("PROCTOR_PORT", "8000"))
