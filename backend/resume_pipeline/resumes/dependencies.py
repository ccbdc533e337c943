"""
Resume route dependencies
"""
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from resume_pipeline.core.database import transaction
from resume_pipeline.services import Services


def get_services(request: Request) -> Services:
    """Services container attached to the app at startup"""
    return request.app.state.services


async def get_transaction(services: Services = Depends(get_services)) -> AsyncGenerator[AsyncSession, None]:
    """Session committed when the route returns without raising"""
    async with transaction(services.session_factory) as session:
        yield session
