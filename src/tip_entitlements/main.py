"""
ASGI entrypoint.

Run:
  uvicorn tip_entitlements.main:app --reload
"""

from __future__ import annotations

from .api.app import create_app
from .config import get_settings


app = create_app(get_settings())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tip_entitlements.main:app", host="0.0.0.0", port=8000, reload=True)
