"""Run the API with uvicorn: ``python -m ikiraha``."""

import os

import uvicorn


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3001"))
    uvicorn.run("ikiraha.main:app", host=host, port=port)


if __name__ == "__main__":
    main()
