#!/usr/bin/env python3
"""
Entrypoint to run the API server.

Serves ``emirimo.api:asgi_app`` so the Socket.IO admin channel shares the
HTTP port. Reload is off unless UVICORN_RELOAD=1.
"""
import os

from dotenv import load_dotenv

load_dotenv()

ROOT_DIR = os.path.dirname(__file__)


def main() -> None:
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    log_level = os.getenv("LOG_LEVEL", "info")
    reload_flag = os.getenv("UVICORN_RELOAD") == "1"

    if reload_flag:
        config = uvicorn.Config(
            "emirimo.api:asgi_app",
            host=host,
            port=port,
            log_level=log_level,
            reload=True,
            reload_dirs=[os.path.join(ROOT_DIR, "emirimo"), os.path.join(ROOT_DIR, "realtime")],
            reload_excludes=["*.log", "*.pdf", "certificates"],
        )
    else:
        # single process; run under Gunicorn for multiple workers
        config = uvicorn.Config("emirimo.api:asgi_app", host=host, port=port, log_level=log_level, reload=False)

    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    main()
