"""Wake-phrase triggered listening sessions with voice-activity endpointing."""

__version__ = "0.1.0"
