from fastapi import Request

from .service import DatabaseService


def get_database_service(request: Request) -> DatabaseService:
    return request.app.state.service
