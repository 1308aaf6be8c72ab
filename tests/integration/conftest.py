"""Integration test conftest.

Tests here run real SQL against the throwaway SQLite feed store from the
root conftest (store_engine, session_maker, db_session).
"""

import pytest


@pytest.fixture(autouse=True)
def _mark_integration(request):
    """Auto-mark all tests in this directory as integration."""
    request.node.add_marker(pytest.mark.integration)
