"""
Keyframe list container and its JSON hand-off file.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import numpy as np

from flythrough.core_types import ViewState, as_view_state
from flythrough.exceptions import ValidationError
from flythrough.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Keyframe:
    """A view state chosen as a waypoint of the movie path."""
    view_state: ViewState
    label: str = ""

    def __post_init__(self):
        """Freeze the view state as a float64 array."""
        self.view_state = as_view_state(self.view_state)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "view_state": self.view_state.tolist(),
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Keyframe":
        """Create from dictionary."""
        if "view_state" not in data:
            raise ValidationError("Keyframe entry has no 'view_state'")
        return cls(
            view_state=data["view_state"],
            label=data.get("label", ""),
        )


class KeyframeList:
    """Ordered keyframes for one movie path."""

    def __init__(self, name: str = "KeyframeList"):
        """Initialize an empty keyframe list.

        Args:
            name: Name of the path
        """
        self.name = name
        self.keyframes: List[Keyframe] = []

    def __len__(self) -> int:
        return len(self.keyframes)

    def __iter__(self):
        return iter(self.keyframes)

    def add_keyframe(self, view_state: Union[Sequence[float], np.ndarray], label: str = "") -> Keyframe:
        """Append a keyframe.

        Args:
            view_state: View state to record
            label: Optional label

        Returns:
            The stored keyframe

        Raises:
            ValidationError: if its length differs from the keyframes already stored
        """
        keyframe = Keyframe(view_state=view_state, label=label)
        if self.keyframes and keyframe.view_state.size != self.dimension:
            raise ValidationError(
                f"Keyframe has {keyframe.view_state.size} values, list holds {self.dimension}"
            )
        self.keyframes.append(keyframe)
        return keyframe

    def remove_keyframe(self, index: int):
        """Remove a keyframe by index.

        Args:
            index: Index of keyframe to remove

        Raises:
            IndexError: if there is no keyframe at ``index``
        """
        if not 0 <= index < len(self.keyframes):
            raise IndexError(f"No keyframe at index {index}")
        del self.keyframes[index]

    def move_keyframe(self, index: int, new_index: int):
        """Move a keyframe to a new position in the order."""
        if not 0 <= index < len(self.keyframes):
            raise IndexError(f"No keyframe at index {index}")
        keyframe = self.keyframes.pop(index)
        self.keyframes.insert(max(0, min(new_index, len(self.keyframes))), keyframe)

    def clear_keyframes(self):
        """Remove all keyframes."""
        self.keyframes.clear()

    @property
    def dimension(self) -> int:
        return self.keyframes[0].view_state.size if self.keyframes else 0

    def view_states(self) -> List[ViewState]:
        return [kf.view_state for kf in self.keyframes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "keyframes": [kf.to_dict() for kf in self.keyframes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyframeList":
        keyframes = cls(name=data.get("name", "KeyframeList"))
        for entry in data.get("keyframes", []):
            kf = Keyframe.from_dict(entry)
            keyframes.add_keyframe(kf.view_state, kf.label)
        return keyframes

    def save_to_file(self, filepath: Union[str, Path]):
        """Save keyframes to a JSON file.

        Args:
            filepath: Path to save file
        """
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug("Saved %d keyframes to %s", len(self.keyframes), filepath)

    @classmethod
    def load_from_file(cls, filepath: Union[str, Path]) -> "KeyframeList":
        """Load keyframes from a JSON file.

        Args:
            filepath: Path to load file
        """
        with open(filepath, 'r') as f:
            data = json.load(f)
        keyframes = cls.from_dict(data)
        logger.debug("Loaded %d keyframes from %s", len(keyframes), filepath)
        return keyframes


__all__ = ["Keyframe", "KeyframeList"]
