# Ensure backend is at sys.path[0] when pytest runs (from repo root or from backend dir)
import io
import sys
from pathlib import Path

_tests_dir = Path(__file__).resolve().parent
_backend = _tests_dir.parent
_str_backend = str(_backend)
if sys.path[0:1] != [_str_backend]:
    sys.path.insert(0, _str_backend)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook

from core.config import Settings
from core.database import DatabaseManager, dispose_database, get_database_manager, init_database
from core.security import ROLE_ADMIN, ROLE_VIEWER, create_access_token
from ingestion.excel_reader import COLUMNS
from services.user_service import create_user

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


def player_values(
    lord_id,
    name=None,
    alliance_tag="PLAC",
    power=20_000_000,
    merits=100_000,
    kills=50_000,
    deaths=1_000,
    **overrides,
):
    """One worksheet row in column order; any column can be overridden by field name."""
    values = {field: 0 for field, _ in COLUMNS}
    values.update(
        lord_id=lord_id,
        name=name if name is not None else f"Lord {lord_id}",
        division=1,
        alliance_id=f"id-{alliance_tag}" if alliance_tag else None,
        alliance_tag=alliance_tag,
        current_power=power,
        power=power,
        merits=merits,
        units_killed=kills,
        units_dead=deaths,
        victories=10,
        defeats=2,
        city_level=25,
        faction="Dragon",
    )
    values.update(overrides)
    return [values[field] for field, _ in COLUMNS]


def workbook_bytes(rows, sheet_name="671", extra_sheets=()):
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    ws.append([field for field, _ in COLUMNS])
    for row in rows:
        ws.append(row)
    for title in extra_sheets:
        wb.create_sheet(title)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def settings():
    return Settings(env="test", database_url=MEMORY_URL, batch_size=2, log_level="WARNING")


@pytest.fixture
def make_row():
    return player_values


@pytest.fixture
def make_workbook():
    return workbook_bytes


@pytest_asyncio.fixture
async def db():
    """Standalone in-memory database with the full schema."""
    manager = DatabaseManager(MEMORY_URL)
    await manager.init()
    await manager.create_schema()
    yield manager
    await manager.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with db.session() as s:
        yield s


@pytest_asyncio.fixture
async def app_db():
    """Global database used by the FastAPI session dependency."""
    await init_database(MEMORY_URL)
    await get_database_manager().create_schema()
    yield get_database_manager()
    await dispose_database()


@pytest_asyncio.fixture
async def client(app_db):
    from main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def _token_for(manager, username, role):
    from core.config import get_settings

    app_settings = get_settings()
    async with manager.session() as s:
        user = await create_user(s, username, "secret123", role, app_settings)
        user_id = user.id
    return create_access_token(user_id, username, role, app_settings)


@pytest_asyncio.fixture
async def admin_headers(app_db):
    token = await _token_for(app_db, "admin", ROLE_ADMIN)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def viewer_headers(app_db):
    token = await _token_for(app_db, "viewer", ROLE_VIEWER)
    return {"Authorization": f"Bearer {token}"}
