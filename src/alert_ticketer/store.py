"""
Identity Store for stable alert IDs.

This module maps volatile alert keys (group keys or fingerprints) to stable,
human-readable alert IDs such as ``ALR-SWF-101``. The counter and the mapping
are kept in two JSON records that are rewritten in full after every
allocation, so IDs survive process restarts.

The state directory must live on a filesystem that survives restarts and
redeploys. Entries are never evicted; the mapping grows with the number of
distinct alert keys ever seen.
"""

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from .exceptions import PersistenceError


logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "ALR-SWF"
DEFAULT_COUNTER = 100


def format_alert_id(prefix: str, number: int) -> str:
    """Format an alert ID with the number zero-padded to at least 3 digits."""
    return f"{prefix}-{number:03d}"


class IdentityStore:
    """File-backed alert key to alert ID mapping with thread-safe allocation."""

    def __init__(
        self,
        counter_path: Union[str, Path],
        mapping_path: Union[str, Path],
        prefix: str = DEFAULT_PREFIX,
        initial_counter: int = DEFAULT_COUNTER,
    ):
        """
        Initialize the store and load any previously persisted state.

        Args:
            counter_path: File holding ``{"counter": n}``
            mapping_path: File holding the alert key to alert ID object
            prefix: Alert ID prefix
            initial_counter: Counter used when no counter record can be read
        """
        self.counter_path = Path(counter_path)
        self.mapping_path = Path(mapping_path)
        self.prefix = prefix
        self.initial_counter = initial_counter
        self.lock = threading.RLock()

        self._counter = initial_counter
        self._mapping: Dict[str, str] = {}
        self._suffix_pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")

        self.load()

    @property
    def counter(self) -> int:
        with self.lock:
            return self._counter

    def __len__(self) -> int:
        with self.lock:
            return len(self._mapping)

    def __contains__(self, key: str) -> bool:
        with self.lock:
            return key in self._mapping

    def load(self):
        """Load counter and mapping; unreadable records fall back to defaults."""
        with self.lock:
            self._counter = self._load_counter()
            self._mapping = self._load_mapping()

            highest = self._highest_suffix()
            if highest > self._counter:
                logger.warning(
                    f"Counter {self._counter} is below highest allocated suffix {highest}, "
                    f"raising counter to {highest}"
                )
                self._counter = highest

            logger.info(
                f"IdentityStore loaded counter={self._counter} "
                f"with {len(self._mapping)} mapping entries"
            )

    def _load_counter(self) -> int:
        try:
            with open(self.counter_path, 'r') as f:
                data = json.load(f)
            counter = data.get("counter") if isinstance(data, dict) else None
            if isinstance(counter, bool) or not isinstance(counter, int) or counter <= 0:
                raise ValueError(f"invalid counter value {counter!r}")
            return counter
        except FileNotFoundError:
            logger.warning(
                f"Counter file {self.counter_path} not found, "
                f"starting alert ID counter at {self.initial_counter}"
            )
        except Exception as e:
            logger.warning(
                f"Failed to load counter from {self.counter_path}: {e}; "
                f"starting alert ID counter at {self.initial_counter}"
            )
        return self.initial_counter

    def _load_mapping(self) -> Dict[str, str]:
        try:
            with open(self.mapping_path, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("mapping record is not a JSON object")
            return {str(key): str(value) for key, value in data.items()}
        except FileNotFoundError:
            logger.warning(f"Mapping file {self.mapping_path} not found, starting with empty mapping")
        except Exception as e:
            logger.warning(f"Failed to load mapping from {self.mapping_path}: {e}; starting with empty mapping")
        return {}

    def _highest_suffix(self) -> int:
        highest = 0
        for alert_id in self._mapping.values():
            match = self._suffix_pattern.match(alert_id)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    def _write_json(self, path: Path, data):
        # Write to temporary file first, then rename for atomic replacement
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = path.with_suffix(path.suffix + '.tmp')
        with open(temp_file, 'w') as f:
            json.dump(data, f)
            f.flush()
            os.fsync(f.fileno())
        temp_file.replace(path)

    def _persist(self):
        # Counter before mapping: the durable counter never trails a durable ID
        self._write_json(self.counter_path, {"counter": self._counter})
        self._write_json(self.mapping_path, self._mapping)

    def lookup(self, key: str) -> Optional[str]:
        """Return the alert ID for a key without allocating."""
        with self.lock:
            return self._mapping.get(key)

    def resolve_or_allocate(self, key: str) -> str:
        """
        Return the alert ID for a key, allocating and persisting a new one if needed.

        Args:
            key: Alert key

        Returns:
            Stable alert ID

        Raises:
            PersistenceError: The new allocation could not be written durably
        """
        with self.lock:
            existing = self._mapping.get(key)
            if existing is not None:
                logger.debug(f"Found existing alert ID {existing} for alert key {key}")
                return existing

            self._counter += 1
            alert_id = format_alert_id(self.prefix, self._counter)
            self._mapping[key] = alert_id

            try:
                self._persist()
            except Exception as e:
                # The counter stays incremented so the number is never reused
                del self._mapping[key]
                logger.error(f"Failed to persist alert ID {alert_id} for alert key {key}: {e}")
                raise PersistenceError(f"Failed to persist alert ID {alert_id}: {e}") from e

            logger.info(f"Generated new alert ID {alert_id} for alert key {key}")
            return alert_id
