"""Interaction layer for GLOBEMARK.

Key Components:
    - GlobeController: picks, uploads, fetches, clears, searches, frames
    - Notice / NoticeCode / NoticeLevel: user-visible messages
    - FetchStatus: state of the last image fetch
    - PreconditionFailed: operation attempted without its inputs
"""

from globemark.interaction.controller import GlobeController
from globemark.interaction.notices import (
    FetchStatus,
    Notice,
    NoticeCode,
    NoticeLevel,
    PreconditionFailed,
)

__all__ = [
    "FetchStatus",
    "GlobeController",
    "Notice",
    "NoticeCode",
    "NoticeLevel",
    "PreconditionFailed",
]
