"""Shared base models and state snapshot support."""

import copy
import logging
from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict


logger = logging.getLogger(__name__)

Amount = int
Ray = int
Wad = int
PercentageBps = int


class EngineModel(BaseModel):
    """Base schema for validated, immutable engine records."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        frozen=True,
        use_enum_values=False,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the model into a plain dictionary."""
        return self.model_dump(mode="json")


class Snapshotable:
    """Mixin capturing and restoring an object's mutable state.

    Attributes listed in ``_snapshot_exclude`` hold references to
    collaborators and are left untouched by :meth:`restore`.
    """

    _snapshot_exclude: Tuple[str, ...] = ()

    def snapshot(self) -> Dict[str, Any]:
        """Return a deep copy of the object's own state."""
        return copy.deepcopy(
            {key: value for key, value in vars(self).items() if key not in self._snapshot_exclude}
        )

    def restore(self, state: Dict[str, Any]) -> None:
        """Reset the object's own state to a previous snapshot."""
        for key, value in copy.deepcopy(state).items():
            setattr(self, key, value)
