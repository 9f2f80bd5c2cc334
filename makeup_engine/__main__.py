"""
Run the HTTP service: python -m makeup_engine
"""
import uvicorn

from .config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run("makeup_engine.main:app", host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
