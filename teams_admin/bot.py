"""
Microsoft Teams bot integration for team provisioning.
"""

import logging
import re
from typing import List, Optional

import aiohttp
from botbuilder.core import (
    CardFactory,
    MessageFactory,
    TurnContext,
    UserState,
)
from botbuilder.core.teams import TeamsActivityHandler
from botbuilder.schema import (
    ActionTypes,
    Attachment,
    CardAction,
    ChannelAccount,
    OAuthCard,
    ThumbnailCard,
)

from .agent import COMMAND_INTENTS, Command, TeamsAdminAgent, parse_command
from .config import config
from .models import BotMessage, ProvisioningIntent

FILE_DOWNLOAD_INFO = "application/vnd.microsoft.teams.file.download.info"
MAGIC_CODE = re.compile(r"^\d{6}$")


class TeamsAdminBot(TeamsActivityHandler):
    """Teams bot that provisions teams from uploaded spreadsheets."""

    def __init__(self, user_state: UserState, agent: Optional[TeamsAdminAgent] = None):
        """Initialize the bot."""
        self.user_state = user_state
        self.intent_accessor = user_state.create_property("ProvisioningIntent")
        self.agent = agent or TeamsAdminAgent()
        self.connection_name = config.bot.connection_name
        self.logger = logging.getLogger(__name__)

    async def on_turn(self, turn_context: TurnContext):
        await super().on_turn(turn_context)
        await self.user_state.save_changes(turn_context)

    async def on_message_activity(self, turn_context: TurnContext):
        """Handle incoming message activities."""
        try:
            attachments = self._file_attachments(turn_context.activity.attachments)
            if attachments:
                await self._handle_upload(turn_context, attachments[0])
                return

            text = TurnContext.remove_recipient_mention(turn_context.activity) or ""
            if MAGIC_CODE.match(text.strip()):
                await self._complete_sign_in(turn_context, text.strip())
                return

            command = parse_command(text)
            self.logger.info(f"Received command {command.value} from {turn_context.activity.from_property.id}")

            if command == Command.HELP:
                await self._send_response(turn_context, self.agent.get_help_message())
            elif command in COMMAND_INTENTS:
                intent = COMMAND_INTENTS[command]
                await self.intent_accessor.set(turn_context, intent.value)
                if await self._get_token(turn_context):
                    await self._send_response(turn_context, self.agent.get_upload_instructions(intent))
                else:
                    await self._send_oauth_card(turn_context)
            elif command == Command.LOGOUT:
                await turn_context.adapter.sign_out_user(turn_context, self.connection_name)
                await turn_context.send_activity(MessageFactory.text("You have been signed out."))
            else:
                await turn_context.send_activity(
                    MessageFactory.text("Please check type help commands to know options.")
                )

        except Exception as e:
            self.logger.error(f"Error handling message: {e}")
            await turn_context.send_activity(
                MessageFactory.text("Sorry, I encountered an error. Please try again.")
            )

    async def on_members_added_activity(
        self, members_added: List[ChannelAccount], turn_context: TurnContext
    ):
        """Greet members added to the conversation."""
        for member in members_added:
            if member.id != turn_context.activity.recipient.id:
                await self._send_response(turn_context, self.agent.get_help_message())

    async def on_teams_signin_verify_state(self, turn_context: TurnContext):
        """Finish the sign in started from the OAuth card inside Teams."""
        state = (turn_context.activity.value or {}).get("state")
        await self._complete_sign_in(turn_context, state)

    async def on_token_response_event(self, turn_context: TurnContext):
        await turn_context.send_activity(
            MessageFactory.text("You are successfully signed in. Now, you can use create team command.")
        )

    async def _handle_upload(self, turn_context: TurnContext, attachment: Attachment):
        token = await self._get_token(turn_context)
        if not token:
            await self._send_oauth_card(turn_context)
            return

        download_url = (attachment.content or {}).get("downloadUrl")
        if not download_url:
            await turn_context.send_activity(
                MessageFactory.text("Attachment received but the file could not be downloaded.")
            )
            return

        file_bytes = await self._download(download_url)
        stored_intent = await self.intent_accessor.get(turn_context, None)
        intent = ProvisioningIntent(stored_intent) if stored_intent else None

        async def notify(text: str):
            await turn_context.send_activity(MessageFactory.text(text))

        await self.agent.handle_upload(token, file_bytes, intent, notify)
        await self._send_response(turn_context, self.agent.get_help_message())

    async def _download(self, url: str) -> bytes:
        timeout = aiohttp.ClientTimeout(total=config.graph.request_timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.read()

    async def _get_token(self, turn_context: TurnContext, magic_code: Optional[str] = None) -> Optional[str]:
        token_response = await turn_context.adapter.get_user_token(
            turn_context, self.connection_name, magic_code
        )
        if token_response is None:
            return None
        return token_response.token

    async def _complete_sign_in(self, turn_context: TurnContext, magic_code: Optional[str]):
        if magic_code and await self._get_token(turn_context, magic_code):
            text = "You are successfully signed in. Now, you can use create team command."
        else:
            text = "Hmm. Something went wrong. Let's try again."
        await turn_context.send_activity(MessageFactory.text(text))

    async def _send_oauth_card(self, turn_context: TurnContext):
        link = await turn_context.adapter.get_oauth_sign_in_link(turn_context, self.connection_name)
        card = OAuthCard(
            text="To do this, you'll first need to sign in.",
            connection_name=self.connection_name,
            buttons=[CardAction(type=ActionTypes.signin, title="Sign In", value=link)],
        )
        await turn_context.send_activity(MessageFactory.attachment(CardFactory.oauth_card(card)))

    @staticmethod
    def _file_attachments(attachments: Optional[List[Attachment]]) -> List[Attachment]:
        return [a for a in attachments or [] if a.content_type == FILE_DOWNLOAD_INFO]

    async def _send_response(self, turn_context: TurnContext, bot_message: BotMessage):
        """Send a response to the user."""
        if bot_message.text:
            await turn_context.send_activity(MessageFactory.text(bot_message.text))

        for attachment in bot_message.attachments or []:
            if attachment.get("type") != "thumbnail":
                continue
            content = attachment["content"]
            card = ThumbnailCard(
                title=content.get("title"),
                subtitle=content.get("subtitle"),
                text=content.get("text"),
                buttons=[
                    CardAction(
                        type=button["type"],
                        title=button["title"],
                        text=button.get("text"),
                        display_text=button.get("displayText"),
                        value=button.get("value"),
                    )
                    for button in content.get("buttons", [])
                ],
            )
            await turn_context.send_activity(MessageFactory.attachment(CardFactory.thumbnail_card(card)))
