import logging

import uvicorn

from navboard.config import get_settings


def run_uvicorn():
    """
    Run the FastAPI app via uvicorn in this process.
    Host and port come from NAVBOARD_HOST / NAVBOARD_PORT.
    """
    settings = get_settings()
    config = uvicorn.Config(
        "navboard.main:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    server.run()


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()
    print(f"[server] Serving navboard on http://{settings.host}:{settings.port}/")
    try:
        run_uvicorn()
    except KeyboardInterrupt:
        print("\n[server] Shutting down.")


if __name__ == "__main__":
    main()
