"""Thin API launcher.

This is the uvicorn entrypoint. All application logic lives in the betareader package.
Run with: uvicorn main:app --reload  (or `python main.py` to honour PORT)

The app instance is created here, not in betareader.app, so that tests can
import create_app without all environment variables configured.
"""

import uvicorn

from betareader.app import add_request_id_middleware, create_app
from betareader.config import get_settings

app = create_app()
# Added LAST so it runs FIRST (outermost)
add_request_id_middleware(app)

__all__ = ["app"]


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
