"""Command-line entrypoint that serves the API with uvicorn."""

import uvicorn


def main() -> None:
    """Serve the ASGI app; settings are read from the environment."""
    uvicorn.run("swipe_match.api.asgi:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
