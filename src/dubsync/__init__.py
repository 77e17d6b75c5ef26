"""
Dub Sync - audio/video alignment and subtitle-slot fitting for dubbing.

A toolkit for:
- Decoding any audio/video container into mono 16 kHz PCM via ffmpeg
- Building short-time log-energy profiles
- Finding the global offset between a video and a separately produced audio track
- Re-muxing the shifted audio onto the untouched video stream
- Fitting synthesized speech clips into subtitle time slots
"""

__version__ = "0.1.0"
