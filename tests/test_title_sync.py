"""
Remote Title Sync Tests.
"""

import pytest

from plaud.title_sync import LOCALLY_CREATED, NO_CONNECTION, SYNCED, is_locally_created, sync_title_to_plaud
from tests.conftest import FakePlaudClient, make_recording_row


@pytest.fixture
def plaud_client():
    return FakePlaudClient()


@pytest.fixture
def client_factory(plaud_client):
    def factory(token, api_base):
        return plaud_client
    return factory


class TestTitleSync:

    @pytest.mark.parametrize("plaud_file_id, expected", [
        ("split-abc-part001", True),
        ("silence-removed-abc", True),
        ("uploaded-123", True),
        ("a1b2c3", False),
    ])
    def test_locally_created(self, plaud_file_id, expected):
        assert is_locally_created(plaud_file_id) is expected

    async def test_pushes_title_and_clears_flag(self, connections, recordings, plaud_client, client_factory):
        connections.connections["user-1"] = {"id": "c1", "bearer_token": "enc-v1-x", "api_base": "https://api.plaud.ai"}
        recordings.add(make_recording_row("r1", plaud_file_id="abc", filename_modified=True))

        status = await sync_title_to_plaud(
            "user-1", "r1", "abc", "Board meeting",
            connections=connections, recordings=recordings, client_factory=client_factory,
        )

        assert status == SYNCED
        assert plaud_client.renamed == [("abc", "Board meeting")]
        assert recordings.rows["r1"]["filename_modified"] is False

    async def test_local_recordings_are_skipped(self, connections, recordings, plaud_client, client_factory):
        status = await sync_title_to_plaud(
            "user-1", "r1", "split-abc-part002", "Part two",
            connections=connections, recordings=recordings, client_factory=client_factory,
        )

        assert status == LOCALLY_CREATED
        assert plaud_client.renamed == []

    async def test_without_connection(self, connections, recordings, plaud_client, client_factory):
        status = await sync_title_to_plaud(
            "user-1", "r1", "abc", "Title",
            connections=connections, recordings=recordings, client_factory=client_factory,
        )

        assert status == NO_CONNECTION
        assert plaud_client.renamed == []
