# sargam.py - Splitting coach replies into speakable lines
"""
Replies from the coach mix ordinary prose with Sargam notation such as::

    G M P, N S' N P, M G R S

Prose is spoken one line at a time. A line made only of note letters (with an
optional apostrophe octave mark and an optional comma/period separator) is
spoken note by note so the student can hear the swaras individually.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

SARGAM_LINE = re.compile(r"(?:[SRGMPDNsrgmpdn]'?[,.]?\s*)+")
SARGAM_TOKEN = re.compile(r"[SRGMPDNsrgmpdn]'?|[.,]")

NOTE_NAMES = {
    'S': 'Sa', 'R': 'Re', 'G': 'Ga', 'M': 'Ma', 'P': 'Pa', 'D': 'Dha', 'N': 'Ni',
    's': 'sa', 'r': 're', 'g': 'ga', 'm': 'ma', 'p': 'pa', 'd': 'dha', 'n': 'ni',
}


@dataclass(frozen=True)
class Note:
    letter: str
    octave_mark: Optional[str] = None
    is_rest: bool = False

    @property
    def spoken(self) -> str:
        if self.is_rest:
            return ""
        return NOTE_NAMES.get(self.letter, self.letter)

    @property
    def symbol(self) -> str:
        return self.letter + (self.octave_mark or "")


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class SargamLine:
    notes: Tuple[Note, ...]

    @property
    def text(self) -> str:
        parts = []
        for note in self.notes:
            if note.is_rest and parts:
                parts[-1] += note.letter
            else:
                parts.append(note.symbol)
        return " ".join(parts)


Line = Union[PlainText, SargamLine]


def clean_text(text: str) -> str:
    # The synthesizer would read asterisks aloud.
    return text.replace("*", "")


def is_sargam(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and SARGAM_LINE.fullmatch(stripped) is not None


def parse_notes(line: str) -> Tuple[Note, ...]:
    notes = []
    for token in SARGAM_TOKEN.findall(line):
        if token in ",.":
            notes.append(Note(letter=token, is_rest=True))
        else:
            notes.append(Note(letter=token[0], octave_mark=token[1:] or None))
    return tuple(notes)


def classify_line(line: str) -> Line:
    stripped = line.strip()
    if is_sargam(stripped):
        return SargamLine(parse_notes(stripped))
    return PlainText(stripped)


def split_lines(text: str) -> List[Line]:
    """Decompose a reply into the ordered lines of a SpeechUnit."""
    return [classify_line(line) for line in clean_text(text).split("\n")]
