# playground.py - Instrument playground
"""
Asks the gateway for an accompaniment idea ("jam") or for a description of
how an instrument would transform a melody. Replies are shown in the view.
"""

from dataclasses import dataclass
from typing import Optional

from components import LLMInterface
from llm import fallback_message

INSTRUMENTS = ("Piano", "Guitar", "Drums")

JAM = "jam"
TRANSFORM = "transform"


@dataclass(frozen=True)
class PlaygroundReply:
    instrument: str
    mode: str
    text: str
    failed: bool = False


def normalize_instrument(name: str) -> Optional[str]:
    name = name.strip().lower()
    return next((instrument for instrument in INSTRUMENTS if instrument.lower() == name), None)


class InstrumentPlayground:
    def __init__(self, llm: LLMInterface):
        self.llm = llm
        self.last_reply: Optional[PlaygroundReply] = None

    async def _ask(self, instrument: str, mode: str) -> PlaygroundReply:
        name = normalize_instrument(instrument)
        if name is None:
            raise ValueError(f"Unknown instrument {instrument!r}; choose one of {', '.join(INSTRUMENTS)}")

        request = self.llm.instrument_accompaniment if mode == JAM else self.llm.instrument_transformation
        try:
            reply = PlaygroundReply(name, mode, await request(name))
        except Exception as e:
            print(f"[Playground] Error getting {mode} idea for {name}: {e}")
            reply = PlaygroundReply(name, mode, fallback_message(e), failed=True)
        self.last_reply = reply
        return reply

    async def jam(self, instrument: str) -> PlaygroundReply:
        return await self._ask(instrument, JAM)

    async def transform(self, instrument: str) -> PlaygroundReply:
        return await self._ask(instrument, TRANSFORM)
