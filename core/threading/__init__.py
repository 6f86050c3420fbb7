"""
REPCOACH Threading Module
"""

from .frame_dispatcher import FrameDispatcher, FrameStatus

__all__ = [
    'FrameDispatcher',
    'FrameStatus',
]
