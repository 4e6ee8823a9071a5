from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import async_session
from backend.app.services.store import SlotStore


# Эта функция выдает сессию базы данных для каждого запроса
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


# Хранилище слотов поверх сессии запроса
async def get_store(session: AsyncSession = Depends(get_session)) -> SlotStore:
    return SlotStore(session)
