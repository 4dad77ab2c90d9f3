import pytest
import discord
from unittest.mock import MagicMock, AsyncMock
from utils.clock import ManualClock
from utils.state import GuardState

@pytest.fixture
def clock():
    return ManualClock(start=0)

@pytest.fixture
def guard(clock):
    return GuardState(clock=clock)

@pytest.fixture
def mock_bot(guard):
    bot = MagicMock()
    bot.guard = guard
    return bot

@pytest.fixture
def mock_guild():
    guild = MagicMock(spec=discord.Guild)
    guild.id = 1
    guild.name = "Test Guild"
    guild.owner_id = 999999
    guild.member_count = 42
    return guild

@pytest.fixture
def mock_user(mock_guild):
    user = MagicMock(spec=discord.Member)
    user.id = 111111
    user.name = "TestUser"
    user.bot = False # Mocks are truthy by default!
    user.roles = []
    user.guild = mock_guild
    user.created_at = discord.utils.utcnow()
    return user

@pytest.fixture
def mock_channel():
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = 222222
    channel.name = "general"
    channel.send = AsyncMock()
    return channel

@pytest.fixture
def mock_interaction(mock_guild):
    interaction = MagicMock(spec=discord.Interaction)
    interaction.guild = mock_guild
    interaction.guild_id = mock_guild.id
    interaction.response = MagicMock()
    interaction.response.send_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock()
    return interaction
