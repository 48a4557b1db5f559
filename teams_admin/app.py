"""
aiohttp host exposing the bot on /api/messages.
"""

import logging

from aiohttp import web
from botbuilder.core import (
    BotFrameworkAdapter,
    BotFrameworkAdapterSettings,
    MemoryStorage,
    MessageFactory,
    TurnContext,
    UserState,
)
from botbuilder.schema import Activity

from .bot import TeamsAdminBot
from .config import config

logger = logging.getLogger(__name__)


async def on_turn_error(turn_context: TurnContext, error: Exception):
    logger.error(f"Unhandled error during turn: {error}")
    await turn_context.send_activity(
        MessageFactory.text("Sorry, I encountered an error. Please try again.")
    )


def create_app() -> web.Application:
    """Build the web application wiring the adapter and the bot."""
    settings = BotFrameworkAdapterSettings(config.bot.app_id, config.bot.app_password)
    adapter = BotFrameworkAdapter(settings)
    adapter.on_turn_error = on_turn_error

    bot = TeamsAdminBot(UserState(MemoryStorage()))

    async def messages(request: web.Request) -> web.Response:
        if "application/json" not in request.headers.get("Content-Type", ""):
            return web.Response(status=415)

        activity = Activity().deserialize(await request.json())
        auth_header = request.headers.get("Authorization", "")

        response = await adapter.process_activity(activity, auth_header, bot.on_turn)
        if response:
            return web.json_response(data=response.body, status=response.status)
        return web.Response(status=201)

    app = web.Application()
    app.router.add_post("/api/messages", messages)
    return app


def main():
    web.run_app(create_app(), port=config.bot.port)


if __name__ == "__main__":
    main()
