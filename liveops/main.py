"""
LiveOps API Entry Point

    uvicorn liveops.main:app
    gunicorn liveops.main:app -c gunicorn.conf.py
"""

from liveops.serving.api import create_api_app

app = create_api_app()


if __name__ == "__main__":
    import uvicorn

    from liveops.config import get_settings

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
