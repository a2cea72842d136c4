import uuid
from datetime import datetime, timezone
from pathlib import PurePosixPath, PureWindowsPath


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def unique_filename(filename: str) -> str:
    """<uuid4>_<basename>, so concurrent uploads of the same name never collide."""
    # clients may send full Windows or POSIX paths; keep only the last part
    name = PurePosixPath(PureWindowsPath(filename or "").name).name or "upload"
    return f"{generate_uuid()}_{name}"
