# capture.py - Voice capture driver (microphone + single-utterance recognition)
import asyncio
from typing import Callable, Optional

from components import ASRInterface, AudioSource, CaptureResult, VoiceCapture
from errors import CaptureError, CaptureErrorCode, RecognitionAborted


class VoiceCaptureDriver(VoiceCapture):
    """
    Runs one recognition pass at a time and reports exactly one terminal
    event per pass through the on_result callback: a transcript (possibly
    empty) or an error code.

    start() while a pass is running is a no-op. stop() ends the pass and
    reports what was heard so far, abort() ends it and reports 'aborted'.
    Both are safe to call when nothing is running.
    """

    def __init__(self, recognizer: ASRInterface,
                 microphone_factory: Callable[[], AudioSource]):
        self.recognizer = recognizer
        self.microphone_factory = microphone_factory
        self._task: Optional[asyncio.Task] = None
        self._microphone: Optional[AudioSource] = None
        self._stop_requested = False
        self._aborted = False
        self._started = False
        self._on_result: Optional[Callable[[CaptureResult], None]] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, on_result: Callable[[CaptureResult], None]) -> bool:
        if self.active:
            print("[Capture] Attempted to start recognition when it was already active.")
            return True
        self._stop_requested = False
        self._aborted = False
        self._started = False
        self._on_result = on_result
        self._task = asyncio.get_running_loop().create_task(self._run(on_result))
        return True

    async def _run(self, on_result: Callable[[CaptureResult], None]) -> None:
        self._started = True
        try:
            transcript = await self._recognize()
            result = CaptureResult(transcript=transcript)
        except asyncio.CancelledError:
            result = CaptureResult(error=CaptureErrorCode.ABORTED)
        except CaptureError as e:
            print(f"[Capture] Speech recognition error: {e.code.value} ({e})")
            result = CaptureResult(error=e.code)
        except Exception as e:
            print(f"[Capture] Speech recognition error: {e}")
            result = CaptureResult(error=CaptureErrorCode.OTHER)
        finally:
            self._release()

        if self._aborted and result.error is None:
            result = CaptureResult(error=CaptureErrorCode.ABORTED)
        on_result(result)

    async def _recognize(self) -> str:
        microphone = self.microphone_factory()
        self._microphone = microphone
        async with microphone:
            if self._aborted:
                raise RecognitionAborted("aborted before listening started")
            print("[Capture] Listening...")
            return await self.recognizer.recognize(
                microphone.stream_audio(), lambda: self._stop_requested)

    def _release(self) -> None:
        microphone, self._microphone = self._microphone, None
        if microphone is not None:
            microphone.close()

    def stop(self) -> None:
        if not self.active:
            return
        self._stop_requested = True
        # Closing the microphone ends the audio stream, which flushes the recognizer.
        self._release()

    def abort(self) -> None:
        if not self.active:
            return
        self._aborted = True
        self._stop_requested = True
        self._release()
        self._task.cancel()
        if not self._started and self._on_result is not None:
            # Cancelled before _run began, so it will never report.
            on_result, self._on_result = self._on_result, None
            on_result(CaptureResult(error=CaptureErrorCode.ABORTED))
