# melody.py - Melody maker
from dataclasses import dataclass, field
from typing import List, Optional

from components import LLMInterface
from llm import fallback_message


@dataclass
class MelodyResult:
    prompt: str
    description: str = ""
    notes: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def notation(self) -> str:
        return " ".join(self.notes)


def split_notes(notes: str) -> List[str]:
    return [note for note in notes.split(" ") if note]


async def make_melody(llm: LLMInterface, prompt: str) -> MelodyResult:
    """Ask the gateway for a short melody described by prompt, e.g. 'a happy morning raga'."""
    prompt = prompt.strip()
    if not prompt:
        raise ValueError("Describe the melody you want")

    try:
        result = await llm.generate_melody(prompt)
    except Exception as e:
        print(f"[Melody] Error generating melody: {e}")
        return MelodyResult(prompt, error=fallback_message(e))

    melody = MelodyResult(prompt, result["description"], split_notes(result["notes"]))
    print(f"[Melody] {len(melody.notes)} notes for '{prompt}'")
    return melody
