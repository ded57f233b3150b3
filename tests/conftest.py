"""Shared test fixtures for Furlong."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from furlong.models.database import Base
from furlong.store import HISTORY_KEY, REGISTRY_KEY, MemoryStore, SqlStore


SPRINT_CHART = """\
GULFSTREAM PARK - Saturday, January 27, 2024 - Race 5
ALLOWANCE OPTIONAL CLAIMING - Thoroughbred
FOR FOUR YEAR OLDS AND UPWARD. Claiming Price $62,500.
Six Furlongs On The Dirt
Purse: $75,000
Last Raced Pgm Horse Name (Jockey) Wgt M/E PP Start 1/4 1/2 Str Fin Odds Comments
20Dec23 6GP2 4 Ginger Punch (Saez, Luis) 1.80* bid 3wide, drew clear 22.45 45.67 1:10.45 1111
15Dec23 4AQU3 2 Silver Streak (Ortiz, Irad) 4.20 chased, no match 22.61 45.90 1:11.02 2222
--- 6 Lucky Lady (IRE) (Prat, Flavien) 12.50 tired 22.90 46.30 1:11.80 3433
Fractional Times: 22.45 45.67 Final Time: 1:10.45
"""

ROUTE_CHART = """\
SARATOGA - Sunday, August 4, 2024 - Race 8
"Whitney Stakes" Grade I
FOR THREE YEAR OLDS AND UPWARD.
One And One Eighth Miles On The Dirt
Last Raced Pgm Horse Name (Jockey) Wgt M/E PP Start 1/4 1/2 3/4 Str Fin Odds Comments
6Jul24 9BEL1 7 Ginger Punch (Velazquez, J) 2.10 stalked, rallied late 23.80 47.95 1:48.12 119765
6Jul24 9BEL3 3 Bold Venture (Rosario, J) 5.60 pressed pace 23.95 48.10 1:48.90 22111
"""


@pytest.fixture
def sprint_chart() -> str:
    return SPRINT_CHART


@pytest.fixture
def route_chart() -> str:
    return ROUTE_CHART


@pytest.fixture
def registry() -> dict:
    """Registry with one merged horse and two independent ones."""
    return {
        "2022 Ginger Punch": {
            "name": "2022 Ginger Punch",
            "owner": "Stonestreet",
            "country": "USA",
            "is_historic": False,
            "aliases": ["Ginger Punch"],
        },
        "Silver Streak": {
            "name": "Silver Streak",
            "owner": "",
            "country": "",
            "is_historic": False,
            "aliases": [],
        },
        "Bold Venture": {
            "name": "Bold Venture",
            "owner": "King Ranch",
            "country": "USA",
            "is_historic": True,
            "aliases": ["Bold Venture (USA)"],
        },
    }


@pytest.fixture
def memory_store(registry) -> MemoryStore:
    return MemoryStore({REGISTRY_KEY: registry, HISTORY_KEY: {}})


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_store(db_engine) -> SqlStore:
    return SqlStore(async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False))
