"""Preserve existing artifacts before they are replaced."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from ..config.constants import FileFormat


logger = logging.getLogger(__name__)


def backup_path_for(path: Path) -> Path:
    """First free backup name: ``<name>.bak``, then ``<name>.bak1``, ``<name>.bak2``..."""
    candidate = path.with_name(path.name + FileFormat.BACKUP_SUFFIX)
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}{FileFormat.BACKUP_SUFFIX}{counter}")
        counter += 1
    return candidate


def backup_existing(path: Union[str, Path]) -> Optional[Path]:
    """Move an existing file at ``path`` out of the way. Returns the backup path, if any."""
    path = Path(path)
    if not path.exists():
        return None
    target = backup_path_for(path)
    path.rename(target)
    logger.info("Existing %s preserved as %s", path.name, target.name)
    return target
