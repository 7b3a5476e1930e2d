"""Turns a transcript or a failure into a persisted result and a spoken reply."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..audio.playback import AudioPlayer, CueSet
from ..exceptions import PlaybackError, SynthesisError
from ..models.result import AnswerRecord, ResultStatus
from ..storage.file_manager import FileManager
from ..tts.base import AbstractSynthesisBackend
from .metrics import MetricsPublisher

logger = logging.getLogger(__name__)

CommandHandler = Callable[[str], str]


@dataclass
class ReplyMessages:
    """Fixed reply texts."""
    reply_template: str = "You said: {command}"
    sorry_understand: str = "Sorry, but I did not quite understand."
    sorry_execute: str = "Sorry, but I could not do that."
    sorry_service: str = "Sorry, the service is not available at the moment."

    @classmethod
    def from_config(cls, config) -> "ReplyMessages":
        defaults = cls()
        return cls(
            reply_template=config.get('responses.reply_template', defaults.reply_template),
            sorry_understand=config.get('responses.sorry_understand', defaults.sorry_understand),
            sorry_execute=config.get('responses.sorry_execute', defaults.sorry_execute),
            sorry_service=config.get('responses.sorry_service', defaults.sorry_service),
        )


class ResponsePipeline:
    """Answers a finished utterance.

    Every answer is written to the session's result file and spoken through
    the synthesis backend while microphone capture is paused. Failures in
    persistence, synthesis or playback are logged and never propagate.
    """

    def __init__(self,
                 synthesizer: AbstractSynthesisBackend,
                 player: AudioPlayer,
                 capture,
                 file_manager: FileManager,
                 metrics: MetricsPublisher,
                 cues: CueSet,
                 messages: Optional[ReplyMessages] = None,
                 voice: str = "en-US-Standard-C",
                 output_format: str = "wav",
                 command_handler: Optional[CommandHandler] = None):
        """Initialize the response pipeline.

        Args:
            synthesizer: Speech synthesis backend
            player: Plays synthesized audio and cue files
            capture: Anything with a paused() context manager (AudioCapture)
            file_manager: Persists the per-session result file
            metrics: Receives tts play metrics
            cues: Location of the apology cue
            messages: Reply texts
            voice: Synthesis voice identifier
            output_format: Synthesis output format
            command_handler: Maps a transcript to reply text; defaults to
                            filling messages.reply_template
        """
        self.synthesizer = synthesizer
        self.player = player
        self.capture = capture
        self.file_manager = file_manager
        self.metrics = metrics
        self.cues = cues
        self.messages = messages or ReplyMessages()
        self.voice = voice
        self.output_format = output_format
        self.command_handler = command_handler or self._echo

    def _echo(self, command: str) -> str:
        return self.messages.reply_template.format(command=command)

    def interpret(self, session_id: str, command: str, confidence: float) -> AnswerRecord:
        """Answer a successful transcription."""
        if not command or not command.strip():
            return self.answer(session_id, ResultStatus.ERROR_PARSING,
                               self.messages.sorry_understand, command or "", confidence)
        try:
            reply = self.command_handler(command)
        except Exception as e:
            logger.error(f"Command handler failed for '{command}': {e}", exc_info=True)
            return self.answer(session_id, ResultStatus.ERROR_EXECUTING,
                               self.messages.sorry_execute, command, confidence)
        return self.answer(session_id, ResultStatus.OK, reply, command, confidence)

    def fail(self, session_id: str, reason: str) -> AnswerRecord:
        """Answer a transcription service failure."""
        logger.info(f"Transcription failed for {session_id}: {reason}")
        return self.answer(session_id, ResultStatus.ERROR_STT, self.messages.sorry_service, "<unknown>", 0)

    def answer(self,
               session_id: str,
               status: ResultStatus,
               message: str,
               command: str,
               confidence: float) -> AnswerRecord:
        """Persist the answer and speak it."""
        logger.info(f"sending answer - {int(status)} - {message}")
        record = AnswerRecord(status=status, message=message, command=command, confidence=confidence)

        try:
            self.file_manager.save_result(session_id, record)
        except (OSError, TypeError) as e:
            logger.error(f"Could not persist result for {session_id}: {e}")

        with self.capture.paused():
            try:
                audio = self.synthesizer.synthesize(message, self.voice, self.output_format)
                self.player.play_stream(audio)
            except (SynthesisError, PlaybackError) as e:
                logger.error(f"failed - answering - {e}")
                self.metrics.emit("tts", "play", "error", -1)
                self._play_apology()
            else:
                self.metrics.emit("tts", "play", "ok", 1)

        return record

    def _play_apology(self) -> None:
        try:
            self.player.play_file(self.cues.sorry)
        except PlaybackError as e:
            logger.error(f"Could not play apology cue: {e}")
