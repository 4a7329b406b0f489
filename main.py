# main.py - SwaraaLaya Voice Coach Main Entry Point
"""
This is the main orchestrator for the voice coach.
It creates and wires every component of the conversation:
- Microphone capture and single-utterance speech recognition
- The conversation state machine and the LLM gateway
- Line and Sargam-note speech synthesis with audio playback
- The audio visualizer and the terminal view

CoachApp is the controller behind the view: it owns the current
conversation session and the practice features, and runs the commands the
view forwards to it.
"""

import argparse
import asyncio
from typing import Callable, Optional

from dotenv import load_dotenv
from rich.console import Group
from rich.text import Text

from components import AudioVisualizer, LLMInterface, TTSInterface, VoiceCapture
from config import CoachConfig, VoiceSettings
from conversation_manager import ConversationManager
from errors import VoiceCoachError
from melody import make_melody
from playground import InstrumentPlayground
from practice import LyricPractice, SingingSession, WHITESPACE_SPLIT, find_song
from presentation import Activity, CoachView, Command, HELP_TEXT, render_marked, render_recitation
from session_state import Category
from synthesis import VoiceSynthesisDriver

CATEGORIES = {
    "vocals": Category.VOCALS,
    "vocal": Category.VOCALS,
    "instruments": Category.INSTRUMENTS,
    "instrument": Category.INSTRUMENTS,
}

PRACTICE_LANG = "hi-IN"


def parse_category(name: str) -> Category:
    try:
        return CATEGORIES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown category {name!r}; choose vocals or instruments") from None


class CoachApp:
    def __init__(self,
                 llm: LLMInterface,
                 engine: TTSInterface,
                 synthesis: VoiceSynthesisDriver,
                 capture: VoiceCapture,
                 visualizer: AudioVisualizer,
                 visualizer_factory: Callable[[], AudioVisualizer]):
        self.llm = llm
        self.engine = engine
        self.synthesis = synthesis
        self.capture = capture
        self.visualizer = visualizer
        self.visualizer_factory = visualizer_factory
        self.playground = InstrumentPlayground(llm)

        self.manager: Optional[ConversationManager] = None
        self.activity: Optional[Activity] = None
        self.quit_requested = False

        self.practice: Optional[LyricPractice] = None
        self._recitation: Optional[asyncio.Task] = None
        self.singing: Optional[SingingSession] = None

    @property
    def category(self) -> Optional[Category]:
        return self.manager.state.category if self.manager else None

    def start_session(self, category: Category) -> ConversationManager:
        """End the current session (if any) and begin a new one."""
        if self.manager is not None:
            self.manager.close()
        self._end_practice()
        self.activity = None
        self.manager = ConversationManager(category, self.capture, self.synthesis, self.llm)
        print(f"[CoachApp] Starting {category.value} session")
        self.manager.start()
        return self.manager

    async def handle(self, command: Command) -> None:
        handler = getattr(self, f"_cmd_{command.name}", None)
        if handler is None:
            raise ValueError(f"Unsupported command: {command.name}")
        try:
            await handler(command.arg)
        except (ValueError, VoiceCoachError) as e:
            print(f"[CoachApp] {command.name}: {e}")
            self.activity = Activity("Oops", str(e), style="red")

    # --- conversation ------------------------------------------------------

    async def _cmd_pause(self, arg: str) -> None:
        self.manager.toggle_pause()

    def _update_voice(self, **changes) -> VoiceSettings:
        settings = self.synthesis.settings.with_changes(**changes)
        self.manager.update_voice_settings(settings)
        return settings

    async def _cmd_voice(self, arg: str) -> None:
        settings = self._update_voice(gender=arg.strip().lower())
        voice = self.synthesis.current_voice()
        name = voice.name if voice else "none available"
        self.activity = Activity("Voice", f"{settings.gender} ({name})")

    async def _cmd_rate(self, arg: str) -> None:
        settings = self._update_voice(rate=float(arg))
        self.activity = Activity("Voice", f"Rate: {settings.rate:.2f}")

    async def _cmd_pitch(self, arg: str) -> None:
        settings = self._update_voice(pitch=float(arg))
        self.activity = Activity("Voice", f"Pitch: {settings.pitch:.2f}")

    async def _cmd_category(self, arg: str) -> None:
        self.start_session(parse_category(arg))

    async def _cmd_help(self, arg: str) -> None:
        self.activity = Activity("Commands", HELP_TEXT, style="dim")

    async def _cmd_quit(self, arg: str) -> None:
        self.quit_requested = True

    # --- practice features -------------------------------------------------

    def _require(self, category: Category, feature: str) -> None:
        if self.category is not category:
            raise ValueError(f"{feature} is only available in a {category.value} session")

    async def _cmd_practice(self, arg: str) -> None:
        self._require(Category.VOCALS, "Lyric practice")
        self.manager.pause()
        step = arg.strip().lower()
        if step in ("", "listen"):
            await self._recite()
        elif step == "record":
            await self._practice_session().start_recording()
            self.activity = Activity(self.practice.song.title, "Recording... type 'practice done' when finished.")
        elif step in ("done", "stop"):
            practice = self._practice_session()
            self.activity = Activity(practice.song.title, "Analyzing your diction...")
            feedback = await practice.analyze()
            self.activity = Activity(f"{practice.song.title}: feedback", feedback)
        else:
            raise ValueError("Use 'practice', 'practice record' or 'practice done'")

    def _practice_session(self) -> LyricPractice:
        if self.practice is None:
            song = find_song(PRACTICE_LANG)
            if song is None:
                raise ValueError("No practice song available")
            tokens = WHITESPACE_SPLIT.split(song.lyrics)

            def highlight(index: int) -> None:
                self.activity = Activity(song.title, render_recitation(tokens, index))

            self.practice = LyricPractice(song, self.engine, self.llm, self.visualizer_factory,
                                          self.synthesis.voices, self.synthesis.settings.gender,
                                          on_word=highlight)
        return self.practice

    async def _recite(self) -> None:
        practice = self._practice_session()
        if self._recitation is not None and not self._recitation.done():
            self._recitation.cancel()
        self._recitation = asyncio.get_running_loop().create_task(practice.recite())
        await self._recitation

    def _end_practice(self) -> None:
        if self._recitation is not None and not self._recitation.done():
            self._recitation.cancel()
        self._recitation = None
        if self.practice is not None:
            self.practice.stop_recording()
            self.practice = None
        if self.singing is not None:
            self.singing.stop_singing()
            self.singing = None

    async def _cmd_sing(self, arg: str) -> None:
        title = arg.strip()
        if not title:
            self.manager.pause()
            if self.singing is None:
                self.singing = SingingSession(self.llm, self.visualizer_factory)
            await self.singing.start_singing()
            self.activity = Activity("Singing", "Recording... type 'sing <song title>' when you finish.")
            return

        if self.singing is None:
            raise ValueError("Type 'sing' first to start recording")
        singing, self.singing = self.singing, None
        self.activity = Activity("Singing", f"Getting feedback on '{title}'...")
        result = await singing.get_feedback(title)
        lyrics = render_marked(result.marked) if result.marked else Text(result.lyrics)
        body = Group(lyrics, Text(""), Text(result.feedback))
        self.activity = Activity(f"Singing: {result.song_title}", body)

    async def _cmd_jam(self, arg: str) -> None:
        self._require(Category.INSTRUMENTS, "The playground")
        self.manager.pause()
        reply = await self.playground.jam(arg)
        self.activity = Activity(f"Jam with {reply.instrument}", reply.text,
                                 style="red" if reply.failed else "cyan")

    async def _cmd_transform(self, arg: str) -> None:
        self._require(Category.INSTRUMENTS, "The playground")
        self.manager.pause()
        reply = await self.playground.transform(arg)
        self.activity = Activity(f"Transform with {reply.instrument}", reply.text,
                                 style="red" if reply.failed else "cyan")

    async def _cmd_melody(self, arg: str) -> None:
        self.manager.pause()
        result = await make_melody(self.llm, arg)
        if result.error:
            self.activity = Activity("Melody Maker", result.error, style="red")
        else:
            self.activity = Activity("Melody Maker", f"{result.description}\n\n{result.notation}")

    async def close(self) -> None:
        self._end_practice()
        if self.manager is not None:
            self.manager.close()
        self.visualizer.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SwaraaLaya: a conversational voice coach for singers and instrumentalists")
    parser.add_argument("--category", default="vocals", choices=sorted(CATEGORIES),
                        help="Session to start with (default: vocals)")
    parser.add_argument("--input-device", type=int, default=None, help="Microphone device id")
    parser.add_argument("--output-device", type=int, default=None, help="Speaker device id")
    parser.add_argument("--voice", choices=("female", "male"), default=None, help="Coach voice gender")
    parser.add_argument("--rate", type=float, default=None, help="Speech rate, 0.5 to 1.5")
    parser.add_argument("--pitch", type=float, default=None, help="Speech pitch, 0.5 to 1.5")
    parser.add_argument("--locale", default=None, help="Voice locale, e.g. en-US or en-IN")
    parser.add_argument("--list-devices", action="store_true", help="List audio devices and exit")
    return parser


def apply_args(config: CoachConfig, args: argparse.Namespace) -> CoachConfig:
    if args.input_device is not None:
        config.input_device = args.input_device
    if args.output_device is not None:
        config.output_device = args.output_device
    if args.locale:
        config.voice_locale = args.locale
    changes = {}
    if args.voice:
        changes["gender"] = args.voice
    if args.rate is not None:
        changes["rate"] = args.rate
    if args.pitch is not None:
        changes["pitch"] = args.pitch
    if changes:
        config.voice = config.voice.with_changes(**changes)
    return config


async def run(config: CoachConfig, category: Category) -> None:
    """
    Create every component, start a session and hand the terminal to the view.
    """
    # Imported here so --help and --list-devices work without opening audio.
    from asr import CartesiaASR
    from audio_player import SoundDeviceAudioPlayer
    from capture import VoiceCaptureDriver
    from llm import AnthropicLLM
    from sources import RealTimeMicrophoneSource
    from tts import CartesiaTTS
    from visualizer import AudioVisualizationDriver

    player = SoundDeviceAudioPlayer(sample_rate=config.tts_sample_rate, device=config.output_device)
    engine = CartesiaTTS(player, api_key=config.cartesia_api_key,
                         model_id=config.tts_model, sample_rate=config.tts_sample_rate)
    recognizer = CartesiaASR(api_key=config.cartesia_api_key, model=config.stt_model,
                             language=config.stt_language, sample_rate=config.stt_sample_rate)
    llm = AnthropicLLM(api_key=config.anthropic_api_key, model=config.llm_model,
                       max_tokens=config.llm_max_tokens)

    capture = VoiceCaptureDriver(
        recognizer,
        lambda: RealTimeMicrophoneSource(sample_rate=config.stt_sample_rate, device=config.input_device))
    synthesis = VoiceSynthesisDriver(engine, settings=config.voice, locale=config.voice_locale)
    try:
        await synthesis.load_voices()
    except Exception as e:
        print(f"[Main] Could not load the voice catalog: {e}")

    def visualizer_factory() -> AudioVisualizationDriver:
        return AudioVisualizationDriver(device=config.input_device)

    visualizer = visualizer_factory()
    await visualizer.start()
    if visualizer.error:
        print(f"[Main] {visualizer.error}")

    app = CoachApp(llm, engine, synthesis, capture, visualizer, visualizer_factory)
    app.start_session(category)
    try:
        await CoachView(app).run()
    finally:
        await app.close()
        await recognizer.close()
        await engine.close()


def main(argv=None) -> None:
    # Load environment variables from .env file
    load_dotenv()
    args = build_parser().parse_args(argv)

    if args.list_devices:
        import sounddevice as sd
        print(sd.query_devices())
        return

    config = apply_args(CoachConfig.from_env(), args)
    try:
        asyncio.run(run(config, parse_category(args.category)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
