"""Reserve listing catalog loaded from the engine configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..core.config import load_settings
from ..models.exceptions import UnknownReserveError
from ..models.reserve_config import ReserveListingModel


logger = logging.getLogger(__name__)


class ReserveCatalog:
    """Loader and query utility for reserve listings."""

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        reserves: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        """Initialize from a YAML file or from an already parsed ``reserves`` mapping."""
        self._path = Path(path).resolve() if path else None
        self._raw = reserves
        self._lock = RLock()
        self._listings: Dict[str, ReserveListingModel] = {}
        self._loaded = False

    def _load(self, force: bool = False) -> None:
        """Load and validate listings, skipping invalid rows."""
        with self._lock:
            if self._loaded and not force:
                return
            raw = self._raw if self._raw is not None else load_settings(self._path).reserves
            loaded: Dict[str, ReserveListingModel] = {}
            for symbol, row in raw.items():
                try:
                    listing = ReserveListingModel.model_validate({"asset": symbol, **dict(row or {})})
                except ValidationError:
                    logger.exception("Invalid reserve listing skipped asset=%s", symbol)
                    continue
                if listing.asset in loaded:
                    logger.warning("Duplicate reserve listing skipped asset=%s", listing.asset)
                    continue
                loaded[listing.asset] = listing
            self._listings = loaded
            self._loaded = True
            logger.info("Loaded reserve listings count=%d", len(loaded))

    def reload(self) -> None:
        self._load(force=True)

    def get(self, asset: str) -> ReserveListingModel:
        """Return the listing for ``asset``.

        Raises:
            UnknownReserveError: If no listing exists for the asset.
        """
        self._load()
        key = str(asset).strip().upper()
        listing = self._listings.get(key)
        if listing is None:
            raise UnknownReserveError("No reserve listing for asset {0}".format(asset))
        return listing

    def list_listings(self) -> List[ReserveListingModel]:
        self._load()
        return list(self._listings.values())

    def assets(self) -> List[str]:
        self._load()
        return list(self._listings.keys())

