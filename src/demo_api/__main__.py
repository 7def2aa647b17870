"""Run the demo API with `python -m demo_api` (same as `cryptogram demo-api`)."""
import os

import uvicorn

from demo_api.api import app


def main():
    """Start the demo API server, bound from CRYPTOGRAM_DEMO_HOST / CRYPTOGRAM_DEMO_PORT."""
    host = os.environ.get("CRYPTOGRAM_DEMO_HOST", "127.0.0.1")
    port = int(os.environ.get("CRYPTOGRAM_DEMO_PORT", "8000"))
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
