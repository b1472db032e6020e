"""
Voice client entry point: a terminal chat driven by the voice session.
Each typed line is treated as one captured utterance.
"""

import asyncio
import logging
from typing import Optional

from ..config import AppConfig
from ..errors import CapabilityUnsupported
from ..event_bus import EventBus
from .answer_client import AnswerClient
from .console import ConsolePresenter
from .controller import VoiceSessionController
from .schema import SessionState
from .speech.console import ConsoleSynthesizer, TypedRecognizer

logger = logging.getLogger("VoiceBotClient")

HELP = "Type a question and press Enter. Commands: /stop /clear /history /quit"


async def main(api_url: Optional[str] = None):
    """Run an interactive voice session in the terminal."""
    config = AppConfig.from_env()
    if api_url:
        config.client.api_url = api_url

    bus = EventBus()
    answers = AnswerClient(config.client)
    await answers.initialize()

    recognizer = TypedRecognizer(timeout=config.client.listen_timeout)
    session = VoiceSessionController(
        recognizer,
        ConsoleSynthesizer(),
        answers,
        event_bus=bus,
        locale=config.client.locale,
        voice=config.client.voice,
    )
    presenter = ConsolePresenter(bus, bot_name=config.persona.name)

    try:
        await session.start()
    except CapabilityUnsupported as e:
        print(f"❌ {e}")
        await answers.close()
        return

    await bus.start()
    print(HELP)

    try:
        while True:
            line = (await asyncio.to_thread(input, "> ")).strip()
            if line in ("/quit", "/exit"):
                break
            if line == "/stop":
                session.stop_listening()
                session.stop_speaking()
            elif line == "/clear":
                session.reset()
            elif line == "/history":
                presenter.show_history(session.transcript)
            elif not line:
                continue
            elif session.state is SessionState.IDLE:
                recognizer.feed(line)
                session.start_listening()
            else:
                print(f"Busy ({session.state.value}), try again in a moment.")
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        logger.info("Shutting down...")
        session.reset()
        await session.stop()
        await bus.stop()
        await answers.close()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
