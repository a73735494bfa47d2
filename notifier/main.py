import uvicorn

from notifier.core.app_factory import create_app

app = create_app()


def run() -> None:
    """Run the API with uvicorn (console entry point)."""
    uvicorn.run("notifier.main:app", host="0.0.0.0", port=8000)
