import pytest

from chessroom.messaging.router import MessageRouter
from chessroom.oracle.chess_oracle import ChessOracle
from chessroom.server.app import create_app
from chessroom.server.settings import GameServerSettings
from chessroom.session.manager import SessionManager
from chessroom.tests.helpers.session import SLOW_CONFIG
from chessroom.tests.mocks import MockConnection, MockOracle


@pytest.fixture
def oracle():
    return MockOracle()


@pytest.fixture
async def manager(oracle):
    session_manager = SessionManager(oracle, config=SLOW_CONFIG)
    yield session_manager
    await session_manager.stop()


@pytest.fixture
async def chess_manager():
    session_manager = SessionManager(ChessOracle(), config=SLOW_CONFIG)
    yield session_manager
    await session_manager.stop()


@pytest.fixture
def message_router(manager):
    return MessageRouter(manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def server_settings():
    return GameServerSettings(assignment_debounce_seconds=0, grace_period_seconds=60)


@pytest.fixture
def app(server_settings):
    return create_app(settings=server_settings, oracle=ChessOracle())
