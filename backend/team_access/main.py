from fastapi import FastAPI

from team_access.api.errors import install_error_handlers
from team_access.core.config import settings
from team_access.core.logging import setup_logging


def create_application(title: str = "Organizer Team Access") -> FastAPI:
    """
    Base app for hosts that expose team access over HTTP.
    Hosts add their own routers and override get_current_team_member.
    """
    setup_logging(settings.LOG_LEVEL_NAME)

    app = FastAPI(title=title)
    install_error_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "team-access", "environment": settings.ENVIRONMENT}

    return app
