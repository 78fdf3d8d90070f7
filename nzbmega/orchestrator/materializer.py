"""Local file discovery for slots."""
from pathlib import Path
from typing import List

from ..exceptions import NotFoundError
from ..models import Slot, SlotFiles


class FolderMaterializer:
    """Captures the files of a slot from the local filesystem."""

    @staticmethod
    def materialize(slot: Slot) -> SlotFiles:
        """
        Capture the files of a slot once.

        A directory yields its direct children that are regular files,
        sorted by name. A single file yields itself, with its parent as
        base directory.

        Raises:
            NotFoundError: storage path no longer exists
        """
        path = Path(slot.storage_path)
        if path.is_dir():
            try:
                names = sorted(p.name for p in path.iterdir() if p.is_file())
            except FileNotFoundError as e:
                raise NotFoundError(f"storage path of '{slot.name}' vanished: {path}") from e
            return SlotFiles(base_dir=path, names=tuple(names))
        if path.is_file():
            return SlotFiles(base_dir=path.parent, names=(path.name,))
        raise NotFoundError(f"storage path of '{slot.name}' does not exist: {path}")

    def list_files(self, slot: Slot) -> List[str]:
        return list(self.materialize(slot).names)
