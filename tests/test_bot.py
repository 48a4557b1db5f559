import pytest
from botbuilder.core import CardFactory, MemoryStorage, UserState
from botbuilder.core.adapters import TestAdapter
from botbuilder.schema import Attachment

from teams_admin.bot import FILE_DOWNLOAD_INFO, TeamsAdminBot


def make_adapter():
    bot = TeamsAdminBot(UserState(MemoryStorage()))
    return TestAdapter(bot.on_turn), bot


@pytest.mark.asyncio
async def test_unknown_command_points_to_help():
    adapter, _ = make_adapter()

    step = await adapter.send("make me a sandwich")
    await step.assert_reply("Please check type help commands to know options.")


@pytest.mark.asyncio
async def test_logout_signs_user_out():
    adapter, _ = make_adapter()

    step = await adapter.send("logout")
    await step.assert_reply("You have been signed out.")


@pytest.mark.asyncio
async def test_create_team_without_token_sends_sign_in_card():
    adapter, _ = make_adapter()

    def is_oauth_card(activity, description=None):
        assert activity.attachments[0].content_type == CardFactory.content_types.oauth_card

    step = await adapter.send("create team")
    await step.assert_reply(is_oauth_card)


def test_only_teams_file_attachments_are_considered():
    attachments = [
        Attachment(content_type="text/html", content="<p>hi</p>"),
        Attachment(content_type=FILE_DOWNLOAD_INFO, content={"downloadUrl": "https://files/1"}, name="teams.xlsx"),
    ]

    files = TeamsAdminBot._file_attachments(attachments)

    assert [a.name for a in files] == ["teams.xlsx"]
    assert TeamsAdminBot._file_attachments(None) == []

