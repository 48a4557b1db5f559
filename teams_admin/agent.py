"""
Main agent class for Teams provisioning from uploaded spreadsheets.
"""

import logging
from enum import Enum
from typing import List, Optional

from .config import config
from .excel_parser import SpreadsheetParseError, parse_team_requests
from .models import BotMessage, ProvisioningIntent, ProvisioningOutcome
from .provisioner import StatusCallback, WorkspaceProvisioner


class Command(str, Enum):
    """Chat commands understood by the bot."""

    HELP = "help"
    CREATE_TEAM = "create_team"
    UPDATE_TEAM = "update_team"
    LOGOUT = "logout"
    UNKNOWN = "unknown"


_COMMANDS = {
    "help": Command.HELP,
    "hi": Command.HELP,
    "hello": Command.HELP,
    "create team": Command.CREATE_TEAM,
    "add members": Command.UPDATE_TEAM,
    "add channels": Command.UPDATE_TEAM,
    "add members/channels": Command.UPDATE_TEAM,
    "logout": Command.LOGOUT,
}

COMMAND_INTENTS = {
    Command.CREATE_TEAM: ProvisioningIntent.CREATE,
    Command.UPDATE_TEAM: ProvisioningIntent.UPDATE,
}


def parse_command(text: Optional[str]) -> Command:
    """Map a chat message to a command."""
    return _COMMANDS.get((text or "").strip().lower(), Command.UNKNOWN)


class TeamsAdminAgent:
    """Turns an uploaded team sheet into provisioning runs and status messages."""

    def __init__(self, provisioner: Optional[WorkspaceProvisioner] = None):
        """Initialize the agent."""
        self.provisioner = provisioner or WorkspaceProvisioner()
        self.logger = logging.getLogger(__name__)

        # Configure logging
        logging.basicConfig(
            level=getattr(logging, config.monitoring.log_level.upper(), logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    async def handle_upload(
        self,
        token: str,
        file_bytes: bytes,
        intent: Optional[ProvisioningIntent],
        notify: StatusCallback,
    ) -> List[ProvisioningOutcome]:
        """
        Parse an uploaded spreadsheet and provision the teams it describes.

        Args:
            token: Graph bearer token of the signed-in user
            file_bytes: Raw workbook content
            intent: Whether the sheet creates new teams or updates existing ones
            notify: Coroutine receiving each status line for the user

        Returns:
            List[ProvisioningOutcome]: One outcome per spreadsheet row
        """
        try:
            requests = parse_team_requests(file_bytes)
        except SpreadsheetParseError as e:
            self.logger.warning(f"Rejected uploaded workbook: {e}")
            await notify(
                "Attachment received but unfortunately we are not able to read your excel file. "
                "Please make sure that all the colums are correct."
            )
            return []

        if intent is None:
            await notify("Not able to process your file. Please restart the flow.")
            return []

        await notify(f"Attachment received. Working on getting your {len(requests)} Teams ready.")
        self.logger.info(f"Starting {intent.value} run for {len(requests)} team(s)")
        return await self.provisioner.provision(token, requests, intent, notify)

    def get_help_message(self) -> BotMessage:
        """Get the welcome card with the supported actions."""
        card = {
            "title": "Welcome to Teams Creation Bot",
            "subtitle": "Your aide in creating & managing teams",
            "text": "Use the bot for following <ol><li>Create a new team by uploading excel file with "
                    "member details</li><li>Add new members to an existing team</li></ol>",
            "buttons": [
                {"type": "messageBack", "title": "Create a new team", "text": "Create Team",
                 "displayText": "Create Team", "value": "Create Team"},
                {"type": "messageBack", "title": "Add Members/Channels to existing team", "text": "Add Members",
                 "displayText": "Add Members/Channels", "value": "Add New Members"},
            ],
        }
        return BotMessage(text="", attachments=[{"type": "thumbnail", "content": card}])

    def get_upload_instructions(self, intent: ProvisioningIntent) -> BotMessage:
        """Get the card explaining the expected spreadsheet layout."""
        if intent == ProvisioningIntent.CREATE:
            title = "Create a new team"
            subtitle = "Automate team creation by sharing team details"
        else:
            title = "Update existing team"
            subtitle = "Automate adding members/channels by sharing team details"

        text = (
            "Please go ahead and upload the excel file (.xlsx) with team details in following format:"
            "<ol>"
            "<li><strong>Team Name</strong>: String eg: <pre>IT Helpline</pre></li>"
            "<li><strong>Channels</strong> : Comma separated channel names eg: <pre>my channel 1,my channel 2</pre></li>"
            "<li><strong>Members</strong>  : Comma separated user emails eg: <pre>user1@org.com, user2@org.com</pre></li>"
            "<li><strong>Guests</strong> (optional) : Comma separated external emails</li>"
            "</ol>"
            "<strong>Note: Please keep first row header as described above. You can provide details for "
            "multiple teams row by row. Members/Channels columns can be empty. "
            "Only .xlsx workbooks are supported, save legacy .xls files as .xlsx first.</strong>"
        )
        card = {"title": title, "subtitle": subtitle, "text": text, "buttons": []}
        return BotMessage(text="", attachments=[{"type": "thumbnail", "content": card}])
