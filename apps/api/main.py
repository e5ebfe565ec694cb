"""Thin API launcher.

This is the uvicorn entrypoint. All application logic lives in the warmlight package.
Run with: uvicorn apps.api.main:app --reload

The app instance is created here (not in warmlight.app) so importing
create_app has no side effects and tests can configure their own app.
"""

from warmlight.app import add_request_id_middleware, create_app

app = create_app()
# Add request-id middleware LAST so it runs FIRST (outermost)
add_request_id_middleware(app)

__all__ = ["app"]
