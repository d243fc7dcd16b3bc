from typing import Annotated

from fastapi import Depends, Request

from app.core.database import ConnectionManager, get_connection_manager


def get_db_manager(request: Request) -> ConnectionManager:
    """Connection manager owned by the app lifespan (process-wide one otherwise)."""
    manager = getattr(request.app.state, "db_manager", None)
    if isinstance(manager, ConnectionManager):
        return manager
    return get_connection_manager()


ManagerDep = Annotated[ConnectionManager, Depends(get_db_manager)]
