from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


@dataclass
class Services:
    gateway: Any
    store: Any
    orchestrator: Any
    dispatcher: Any
    monitor: Any


def get_services(request: Request) -> Services:
    return request.app.state.services


def failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})
