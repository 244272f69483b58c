"""
Unit tests for the detection command.
"""

import pytest

from conftest import write_config
from verus_chat import __main__ as cli
from verus_chat.discovery import ConfigLocator


class FixedHeightClient:
    def __init__(self, endpoint, timeout):
        self.endpoint = endpoint

    async def get_block_count(self, **kwargs):
        return 77

    async def close(self):
        pass


@pytest.fixture
def detector_in(monkeypatch, tmp_path):
    """Point the command's detector at an empty home and a fake daemon."""
    original = cli.BlockchainDetector

    def build():
        return original(
            locator=ConfigLocator(platform="linux", home=tmp_path),
            client_factory=FixedHeightClient,
        )

    monkeypatch.setattr(cli, "BlockchainDetector", build)
    return tmp_path


@pytest.mark.asyncio
async def test_exit_code_is_1_when_nothing_is_available(detector_in):
    assert await cli.main([]) == 1


@pytest.mark.asyncio
async def test_folder_argument_scopes_detection(detector_in):
    """
    Given a primary chain config in a chosen folder
    When running the command with that folder
    Then the chain is detected and the exit code is 0
    """
    # Given
    folder = detector_in / "configs"
    write_config(folder / "VRSC.conf")

    # When
    code = await cli.main([str(folder)])

    # Then
    assert code == 0
