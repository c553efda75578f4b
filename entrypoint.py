"""Backend entrypoint. Starts uvicorn with the port from env."""
import os
import uvicorn

from holdings_recon.main import create_app


def main() -> None:
    host = os.environ.get("BACKEND_HOST", "127.0.0.1")
    port = int(os.environ.get("BACKEND_PORT", "8001"))
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
