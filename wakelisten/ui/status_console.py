"""Rich console printer for session events."""

import logging
from datetime import datetime
from typing import Optional

from pubsub import pub
from rich.console import Console
from rich.text import Text

logger = logging.getLogger(__name__)

_STYLES = {
    ("userspeech", "end"): "cyan",
    ("tts", "play"): "green",
}


class StatusConsole:
    """Prints one line per metric so an operator can follow sessions live."""

    def __init__(self, topic: str = "metrics", console: Optional[Console] = None):
        self.topic = topic
        self.console = console or Console()
        self.lines_printed = 0
        pub.subscribe(self._on_metric, topic)

    def _on_metric(self, category: str, action: str, label: str, value: float) -> None:
        style = _STYLES.get((category, action), "white")
        if value is not None and value < 0:
            style = "bold red"
        line = Text()
        line.append(datetime.now().strftime("%H:%M:%S "), style="dim")
        line.append(f"{category}.{action}", style=style)
        line.append(f" {label}")
        self.console.print(line)
        self.lines_printed += 1

    def banner(self, phrase: str) -> None:
        self.console.rule(f"[bold]wakelisten[/bold] - say \"{phrase}\"")

    def shutdown(self) -> None:
        try:
            pub.unsubscribe(self._on_metric, self.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
