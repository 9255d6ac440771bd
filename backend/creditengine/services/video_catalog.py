from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..models.video import Video


@dataclass(frozen=True)
class CatalogVideo:
    id: str
    playable: bool
    duration_s: Optional[int]


def get_video(db: Session, video_id: str) -> CatalogVideo | None:
    video = db.query(Video).filter(Video.id == video_id).first()
    if video is None:
        return None
    return CatalogVideo(id=video.id, playable=video.is_playable, duration_s=video.duration_s)
