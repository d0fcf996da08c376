"""AI insights domain - Rate limited symptom information via Gemini"""

from .router import router

__all__ = ["router"]
