"""
Run-time view of the server under test.
"""

import logging
import os
import uuid
from typing import Iterable, List, Optional

from .config import ServerConfig
from .filters import FilterDirective, parse_filters
from .models import KeyedAttributes

logger = logging.getLogger(__name__)


class ServerInfo:
    """
    Capabilities, substitutions and data location for one run.

    Substitutions are copied from the configuration so that uid rotation in
    one run never leaks into the configuration or into a later run.
    """

    def __init__(
        self,
        features: Iterable[str] = (),
        substitutions: Optional[KeyedAttributes] = None,
        calendar_data_filters: Iterable[str] = (),
        data_dir: str = ".",
        uid_count: int = 10,
    ):
        self.features = frozenset(features)
        self.substitutions = substitutions.copy() if substitutions else KeyedAttributes()
        self.calendar_data_filters: List[FilterDirective] = parse_filters(
            list(calendar_data_filters)
        )
        self.data_dir = data_dir
        self.uid_count = uid_count

    @classmethod
    def from_config(cls, config: ServerConfig) -> "ServerInfo":
        subs = KeyedAttributes(config.substitutions)
        info = cls(
            features=config.features,
            substitutions=subs,
            calendar_data_filters=config.calendar_data_filters,
            data_dir=config.data_dir,
            uid_count=config.uid_count,
        )
        info.new_uids()
        return info

    def feature_supported(self, feature: str) -> bool:
        return feature in self.features

    def missing_features(self, required: Iterable[str]) -> List[str]:
        return [f for f in required if f not in self.features]

    def excluded_features(self, excluded: Iterable[str]) -> List[str]:
        return [f for f in excluded if f in self.features]

    def new_uids(self) -> None:
        """Regenerate the $uidN: substitution variables."""
        for i in range(1, self.uid_count + 1):
            self.substitutions.put(f"$uid{i}:", str(uuid.uuid4()))
        logger.debug("Rotated %d uid substitutions", self.uid_count)

    def subs(self, text: Optional[str]) -> Optional[str]:
        """Replace every substitution variable in text, longest key first."""
        if not text:
            return text
        for key in sorted(self.substitutions, key=len, reverse=True):
            if key in text:
                text = text.replace(key, str(self.substitutions.get_only(key, "")))
        return text

    def data_path(self, path: str) -> str:
        if os.path.isabs(path):
            return path
        return os.path.join(self.data_dir, path)

    def read_data(self, path: str) -> str:
        """Read a request body or fixture and apply substitutions."""
        with open(self.data_path(path), "r", encoding="utf-8", newline="") as f:
            return self.subs(f.read()) or ""
