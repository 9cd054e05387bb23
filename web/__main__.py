"""
Web entry point

Run with:
    python -m web
"""

import uvicorn

from core.config.loader import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "web.app:app",
        host=settings.config.web_host,
        port=settings.config.web_port,
        reload=False,
    )
