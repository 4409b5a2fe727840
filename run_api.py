"""Run the Vinexport AI API server."""

import uvicorn

from vinexport.api.config import Settings

if __name__ == "__main__":
    settings = Settings()
    uvicorn.run(
        "vinexport.api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
