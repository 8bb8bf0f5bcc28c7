"""Console entry point: ``crossseed-ui`` serves the dashboard with uvicorn."""

import uvicorn

from crossseed_ui.config import settings


def main() -> None:
    uvicorn.run(
        "crossseed_ui.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
        # One worker: the scheduler and rate-limit counters are in-process.
        workers=1,
    )


if __name__ == "__main__":
    main()
