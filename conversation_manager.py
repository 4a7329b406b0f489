import asyncio
from collections import deque
from typing import Callable, Optional

from components import CaptureResult, LLMInterface, VoiceCapture, VoiceSynthesis
from config import VoiceSettings
from errors import SynthesisVoiceUnavailable
from prompts import SWARALAYA_SYSTEM_INSTRUCTION
from session_state import (
    CancelReply, CancelSpeech, CaptureFailed, Category, ListenRequested, PauseToggled,
    ReplyFailed, ReplyReceived, RequestReply, SessionStarted, SessionState, Speak,
    SpeechFinished, StartListening, StopListening, TranscriptReceived, VoiceUnavailable,
    transition,
)


class ConversationManager:
    """Conversation state machine driver.

    Owns the SessionState, feeds events through transition() one at a time and
    carries out the resulting effects on the capture driver, the synthesis
    driver and the LLM gateway. Nothing else writes the state.

    Every asynchronous callback is tagged with the session id that was current
    when it was scheduled; pausing or closing bumps the id so late callbacks
    from before the pause are dropped.
    """

    def __init__(self, category: Category, capture: VoiceCapture, synthesis: VoiceSynthesis,
                 llm: LLMInterface, system_prompt: Optional[str] = SWARALAYA_SYSTEM_INSTRUCTION):
        self.capture = capture
        self.synthesis = synthesis
        self.llm = llm
        self.system_prompt = system_prompt
        self._state = SessionState(category=category)

        # 版本号机制 - used to drop stale callbacks
        self.current_session_id = 0
        self._pending = deque()
        self._dispatching = False
        self._reply_task: Optional[asyncio.Task] = None
        self.closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    def get_current_session_id(self) -> int:
        return self.current_session_id

    # --- intents -----------------------------------------------------------

    def start(self) -> None:
        self.dispatch(SessionStarted())

    def toggle_pause(self) -> None:
        self.dispatch(PauseToggled())

    def pause(self) -> None:
        if not self._state.paused:
            self.toggle_pause()

    def resume(self) -> None:
        if self._state.paused:
            self.toggle_pause()

    def request_listening(self) -> None:
        self.dispatch(ListenRequested())

    def update_voice_settings(self, settings: VoiceSettings) -> None:
        self.synthesis.update_settings(settings)
        print(f"[ConversationManager] Voice settings: {settings.gender}, rate {settings.rate:.2f}, pitch {settings.pitch:.2f}")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.current_session_id += 1
        self.synthesis.cancel()
        self.capture.abort()
        self._cancel_reply()
        print("[ConversationManager] Session closed")

    # --- event loop --------------------------------------------------------

    def dispatch(self, event) -> None:
        """Apply an event. Events raised while effects run are queued and
        applied after, so each transition runs to completion."""
        if self.closed:
            return
        self._pending.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._pending and not self.closed:
                self._apply(self._pending.popleft())
        finally:
            self._dispatching = False

    def _apply(self, event) -> None:
        old = self._state
        new, effects = transition(old, event)
        self._state = new
        if (new.lifecycle, new.paused) != (old.lifecycle, old.paused):
            paused = " (paused)" if new.paused else ""
            print(f"[ConversationManager] State: {old.lifecycle.value} -> {new.lifecycle.value}{paused}")
        if new.paused and not old.paused:
            self.current_session_id += 1
        for effect in effects:
            self._execute(effect)

    def _guarded(self, make_event: Callable) -> Callable:
        session_id = self.current_session_id

        def callback(*args):
            if self.closed or session_id != self.current_session_id:
                print("[ConversationManager] Dropping stale callback")
                return
            self.dispatch(make_event(*args))

        return callback

    def _execute(self, effect) -> None:
        if isinstance(effect, Speak):
            # Capture must not hear the coach's own voice.
            self.capture.abort()
            try:
                self.synthesis.speak(effect.text, self._guarded(SpeechFinished))
            except SynthesisVoiceUnavailable:
                self.dispatch(VoiceUnavailable())
        elif isinstance(effect, StartListening):
            self.capture.start(self._guarded(self._capture_event))
        elif isinstance(effect, StopListening):
            self.capture.abort()
        elif isinstance(effect, CancelSpeech):
            self.synthesis.cancel()
        elif isinstance(effect, RequestReply):
            self._cancel_reply()
            self._reply_task = asyncio.get_running_loop().create_task(
                self._fetch_reply(effect.history, self._guarded(ReplyReceived), self._guarded(ReplyFailed)))
        elif isinstance(effect, CancelReply):
            self._cancel_reply()
        else:
            raise TypeError(f"Unknown session effect: {effect!r}")

    @staticmethod
    def _capture_event(result: CaptureResult):
        if result.error is not None:
            return CaptureFailed(result.error)
        return TranscriptReceived(result.transcript or "")

    async def _fetch_reply(self, history, on_reply: Callable, on_failure: Callable) -> None:
        try:
            text = await self.llm.complete(self.system_prompt, history)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"[ConversationManager] Error getting AI response: {e}")
            on_failure(str(e))
            return
        on_reply(text)

    def _cancel_reply(self) -> None:
        task, self._reply_task = self._reply_task, None
        if task is not None and not task.done():
            task.cancel()
