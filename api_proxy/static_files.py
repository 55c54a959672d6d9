import logging
from pathlib import Path

from api_proxy.errors import StaticFileForbidden, StaticFileNotFound

logger = logging.getLogger("uvicorn.error")


def resolve_static_path(static_root: str, relative_path: str) -> Path:
    """
    Map a ``/public/`` request path onto a file below ``static_root``.

    Raises ``StaticFileForbidden`` for anything resolving outside the root
    (``..`` segments, absolute paths, symlinks pointing out) and
    ``StaticFileNotFound`` for missing files and directories.
    """
    root = Path(static_root).resolve()
    candidate = (root / relative_path).resolve()
    if candidate != root and root not in candidate.parents:
        logger.warning(
            f"[Static] Directory traversal attempt blocked: {relative_path!r} resolves outside {root}"
        )
        raise StaticFileForbidden(relative_path)
    if not candidate.is_file():
        raise StaticFileNotFound(relative_path)
    return candidate
