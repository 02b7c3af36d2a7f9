"""Middleware components for the termgate HTTP surface."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


def setup_cors(app: FastAPI, origins: list[str]) -> None:
    """Add CORS middleware to the FastAPI application.

    Args:
        app: The FastAPI application instance
        origins: Allowed browser origins; ``["*"]`` accepts every origin
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
