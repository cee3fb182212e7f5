"""Pytest fixtures shared by the fourlife test suite."""

import pytest


@pytest.fixture(autouse=True, scope="session")
def progress_db_path(tmp_path_factory):
    """Point ProgressStore's default path at a throwaway database."""
    path = tmp_path_factory.mktemp("progress") / "fourlife.db"
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("FOURLIFE_DB_PATH", str(path))
        yield path
