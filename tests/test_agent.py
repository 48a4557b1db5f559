import pytest

from teams_admin.agent import Command, TeamsAdminAgent, parse_command
from teams_admin.models import OutcomeStatus, ProvisioningIntent, ProvisioningOutcome

HEADER = ("Team Name", "Channels", "Members")


class RecordingProvisioner:
    def __init__(self):
        self.runs = []

    async def provision(self, token, requests, intent, notify=None):
        self.runs.append((token, requests, intent))
        outcomes = []
        for request in requests:
            await notify(f"done {request.team_name}")
            outcomes.append(ProvisioningOutcome(team_name=request.team_name, status=OutcomeStatus.SUCCESS))
        return outcomes


@pytest.fixture
def agent_and_messages():
    provisioner = RecordingProvisioner()
    agent = TeamsAdminAgent(provisioner=provisioner)
    messages = []

    async def notify(text):
        messages.append(text)

    return agent, provisioner, messages, notify


@pytest.mark.parametrize(
    "text, expected",
    [
        ("help", Command.HELP),
        (" Hello ", Command.HELP),
        ("Create Team", Command.CREATE_TEAM),
        ("add members", Command.UPDATE_TEAM),
        ("Add Channels", Command.UPDATE_TEAM),
        ("add members/channels", Command.UPDATE_TEAM),
        ("logout", Command.LOGOUT),
        ("delete everything", Command.UNKNOWN),
        (None, Command.UNKNOWN),
    ],
)
def test_parse_command(text, expected):
    assert parse_command(text) == expected


@pytest.mark.asyncio
async def test_upload_runs_provisioner_with_explicit_intent(agent_and_messages, workbook_bytes):
    agent, provisioner, messages, notify = agent_and_messages
    data = workbook_bytes([HEADER, ("Alpha", "", "a@org.com"), ("Beta", "", "b@org.com")])

    outcomes = await agent.handle_upload("secret", data, ProvisioningIntent.UPDATE, notify)

    assert [o.team_name for o in outcomes] == ["Alpha", "Beta"]
    token, requests, intent = provisioner.runs[0]
    assert token == "secret"
    assert intent == ProvisioningIntent.UPDATE
    assert messages == [
        "Attachment received. Working on getting your 2 Teams ready.",
        "done Alpha",
        "done Beta",
    ]


@pytest.mark.asyncio
async def test_unreadable_upload_reports_and_skips_provisioning(agent_and_messages):
    agent, provisioner, messages, notify = agent_and_messages

    outcomes = await agent.handle_upload("secret", b"garbage", ProvisioningIntent.CREATE, notify)

    assert outcomes == []
    assert provisioner.runs == []
    assert messages[0].startswith("Attachment received but unfortunately we are not able to read your excel file.")


@pytest.mark.asyncio
async def test_upload_without_intent_asks_to_restart(agent_and_messages, workbook_bytes):
    agent, provisioner, messages, notify = agent_and_messages
    data = workbook_bytes([HEADER, ("Alpha", "", "a@org.com")])

    assert await agent.handle_upload("secret", data, None, notify) == []
    assert provisioner.runs == []
    assert messages == ["Not able to process your file. Please restart the flow."]


def test_upload_instructions_follow_intent(agent_and_messages):
    agent = agent_and_messages[0]

    create = agent.get_upload_instructions(ProvisioningIntent.CREATE)
    update = agent.get_upload_instructions(ProvisioningIntent.UPDATE)

    assert create.attachments[0]["content"]["title"] == "Create a new team"
    assert update.attachments[0]["content"]["title"] == "Update existing team"
    assert len(agent.get_help_message().attachments[0]["content"]["buttons"]) == 2


def test_upload_instructions_name_the_supported_format(agent_and_messages):
    agent = agent_and_messages[0]

    text = agent.get_upload_instructions(ProvisioningIntent.CREATE).attachments[0]["content"]["text"]

    assert ".xlsx" in text
    assert ".xls files" in text
