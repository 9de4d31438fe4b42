"""Run the HTTP API: ``python -m coderag``."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "coderag.web.app:app",
        host=os.getenv("CODERAG_HOST", "127.0.0.1"),
        port=int(os.getenv("CODERAG_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
