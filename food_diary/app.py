"""
FastAPI application entry point for the food diary service.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from food_diary.config import get_settings
from food_diary.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Food Diary API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
