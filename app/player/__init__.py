"""In-process playback queue used by the player surface."""

from app.player.queue import PlaybackQueue, PlaybackQueueController

__all__ = ["PlaybackQueue", "PlaybackQueueController"]
