from .album import Album, album_songs
from .band import Band
from .country import Country
from .event import Event, EventType
from .member import Member
from .song import Song
from .user import User

__all__ = [
    "Album",
    "Band",
    "Country",
    "Event",
    "EventType",
    "Member",
    "Song",
    "User",
    "album_songs",
]
