"""Main application entry point for wakelisten."""

import sys
import time
import argparse
import logging
from pathlib import Path

from wakelisten import __version__
from wakelisten.audio.audio_pub import AudioPublisher, AUDIO_TOPIC
from wakelisten.audio.capture import AudioCapture
from wakelisten.audio.playback import AudioPlayer, CueSet
from wakelisten.exceptions import PlaybackError
from wakelisten.services.metrics import MetricsPublisher
from wakelisten.services.response_pipeline import ReplyMessages, ResponsePipeline
from wakelisten.services.session_controller import ListenSettings, SessionController
from wakelisten.services.transcription_service import TranscriptionService
from wakelisten.storage.file_manager import FileManager
from wakelisten.tts.google_backend import GoogleTextToSpeechBackend
from wakelisten.ui.status_console import StatusConsole
from wakelisten.vad.classifier import WebRtcFrameClassifier
from wakelisten.wakeword.detector import WakewordDetector, load_openwakeword_model

from .config import WakeListenConfig

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config_path: str = None, secrets_path: str = None, log_level: str = None):
        self.config = WakeListenConfig(config_path, secrets_path=secrets_path)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.should_exit = False
        self.status_console = None

    def init(self):
        logger.info("Initializing services...")

        sample_rate = self.config.get('audio.sample_rate', 16000)
        chunk_size = self.config.get('audio.chunk_size', 1280)
        channels = self.config.get('audio.channels', 1)
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

        self.file_manager = FileManager(self.config.get_log_directory())
        self.file_manager.cleanup_old_sessions(self.config.get('storage.max_age_days', 30))

        self.metrics = MetricsPublisher(self.config.get('metrics.topic', 'metrics'))
        if self.config.get('logging.console_output', True):
            self.status_console = StatusConsole(self.metrics.topic)

        self.cues = CueSet.from_directory(self.config.get_resources_directory())
        self.player = AudioPlayer(self.config.get('playback.speaker_device', 'default'))

        self.audio_publisher = AudioPublisher(AUDIO_TOPIC)
        self.audio_capture = AudioCapture(
            callback=self.audio_publisher.publish_audio_event,
            sample_rate=sample_rate,
            chunk_size=chunk_size,
            channels=channels,
            gain_db=self.config.get('audio.mic_gain_db', 0),
            input_device_index=self.config.get('audio.input_device_index'),
        )

        credentials_path = self.config.get_google_credentials_path()
        self.transcription_service = TranscriptionService.from_config(self.config)
        self.synthesizer = GoogleTextToSpeechBackend(credentials_path)
        self.synthesizer.initialize()

        self.response_pipeline = ResponsePipeline(
            synthesizer=self.synthesizer,
            player=self.player,
            capture=self.audio_capture,
            file_manager=self.file_manager,
            metrics=self.metrics,
            cues=self.cues,
            messages=ReplyMessages.from_config(self.config),
            voice=self.config.get('tts.voice', 'en-US-Standard-C'),
            output_format=self.config.get('tts.output_format', 'wav'),
        )

        settings = ListenSettings.from_config(self.config)
        classifier = WebRtcFrameClassifier(
            aggressiveness=self.config.get('vad.aggressiveness', 0),
            sample_rate=sample_rate,
            frame_bytes=settings.frame_bytes,
        )
        self.controller = SessionController(
            settings=settings,
            classifier=classifier,
            file_manager=self.file_manager,
            transcription_service=self.transcription_service,
            response_pipeline=self.response_pipeline,
            capture=self.audio_capture,
            player=self.player,
            metrics=self.metrics,
            cues=self.cues,
        )

        model = load_openwakeword_model(
            self.config.get('wakeword.model_paths', []),
            self.config.get('wakeword.vad_threshold', 0.0),
        )
        self.detector = WakewordDetector(
            model=model,
            on_wake=self.controller.on_wake,
            on_frame=self.controller.on_frame,
            phrase=self.config.get('wakeword.phrase', 'list maker'),
            score_threshold=self.config.get('wakeword.score', 0.8),
        )
        self.controller.on_idle = self.detector.rearm
        self.detector.subscribe(AUDIO_TOPIC)

    def setup_devices(self):
        """Run mixer setup and play the startup cue with the microphone paused."""
        self.player.run_setup_commands(self.config.get('playback.setup_commands', []))
        if self.config.get('playback.play_startup_sound', True):
            with self.audio_capture.paused():
                try:
                    self.player.play_file(self.cues.startup)
                except PlaybackError as e:
                    logger.warning(f"Could not play startup sound: {e}")

    def run(self, duration: int = None):
        try:
            self.setup_devices()
            if self.status_console:
                self.status_console.banner(self.detector.phrase)
            self.audio_capture.start_recording()
            if duration:
                time.sleep(duration)
            else:
                while not self.should_exit:
                    time.sleep(1)
        except Exception as e:
            logger.error(f"Error in run: {e}", exc_info=True)
        finally:
            self.cleanup()

    def cleanup(self):
        if self.audio_capture.is_recording:
            self.audio_capture.stop_recording()
        self.controller.shutdown()
        self.detector.unsubscribe()
        self.transcription_service.shutdown()
        self.synthesizer.cleanup()
        if self.status_console:
            self.status_console.shutdown()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'log/wakelisten.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # session events go through StatusConsole
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("="*50)
    logger.info("wakelisten starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("="*50)


def main() -> None:
    """Main entry point for wakelisten."""
    parser = argparse.ArgumentParser(
        description="wakelisten - wake phrase triggered voice replies",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )

    parser.add_argument(
        "--secrets",
        type=str,
        help="Path to a YAML file with credentials, merged over the config"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: logging.level from config)"
    )

    parser.add_argument(
        "--duration",
        type=int,
        help="Exit after this many seconds instead of running until interrupted"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"wakelisten v{__version__}"
    )

    args = parser.parse_args()

    server = Server(args.config, secrets_path=args.secrets, log_level=args.log_level)
    try:
        server.init()
        server.run(args.duration)
    except KeyboardInterrupt:
        server.should_exit = True
        print("\nGoodbye!")
    except Exception as e:
        print(f"Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
