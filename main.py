"""ASGI entry point: ``uvicorn main:app``."""

from fastapi import FastAPI, HTTPException

from api.app import create_app

try:
    app = create_app()
except RuntimeError as exc:
    disabled_reason = str(exc)
    app = FastAPI(title="Comic Converter (disabled)", version="0.1.0")

    @app.api_route("/{path:path}", methods=["GET", "POST"], include_in_schema=False)
    async def api_disabled(path: str) -> None:
        raise HTTPException(
            status_code=503,
            detail={
                "code": "API_DISABLED",
                "message": f"{disabled_reason} Set enable_local_api = true in config.toml or CCV_ENABLE_LOCAL_API=1.",
            },
        )
