from chessroom.tests.mocks.connection import MockConnection
from chessroom.tests.mocks.oracle import MockOracle, MockPosition

__all__ = ["MockConnection", "MockOracle", "MockPosition"]
