import pytest
import pytest_asyncio

from scorebot.config import ReportSettings
from scorebot.database.database import Database
from scorebot.database.game_records import GameRecordStore
from scorebot.operations.ledger import DatabaseLedger
from scorebot.operations.permissions import PermissionPolicy

from tests.fakes import ADMIN, BIG_ADMIN, CHANNEL


@pytest.fixture
def settings() -> ReportSettings:
    return ReportSettings(
        channel_name=CHANNEL,
        score_commands=("!score", "!result"),
        verify_emoji="✅",
        certified_emoji="🏆",
        error_emoji="❌",
        admin_ids=frozenset({ADMIN, BIG_ADMIN}),
        big_admin_ids=frozenset({BIG_ADMIN}),
        min_report_fields=2,
    )


@pytest.fixture
def policy(settings) -> PermissionPolicy:
    return PermissionPolicy.from_settings(settings)


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'scorebot_test.db'}")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def store(database) -> GameRecordStore:
    return GameRecordStore(database)


@pytest.fixture
def ledger(database) -> DatabaseLedger:
    return DatabaseLedger(database)
