# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Checker configuration.

Options may come from a JSON file (either snake_case or camelCase keys) and
are then overridden by explicit CLI flags:

    {"preciseBorrowExtents": true, "maxStatements": 10000, "jobs": 4}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from borrowck.core.errors import ConfigError

_KEYS = {
	"precise_borrow_extents": "precise_borrow_extents",
	"preciseBorrowExtents": "precise_borrow_extents",
	"max_statements": "max_statements",
	"maxStatements": "max_statements",
	"jobs": "jobs",
}


@dataclass(frozen=True)
class CheckerConfig:
	"""
	precise_borrow_extents: retire borrows after their holder's last use
	  instead of at the holder's scope exit (off = lexical baseline).
	max_statements: reject units with more statements (None = unrestricted).
	jobs: worker threads for multi-unit programs (None = one per CPU).
	"""

	precise_borrow_extents: bool = False
	max_statements: Optional[int] = None
	jobs: Optional[int] = None

	def __post_init__(self) -> None:
		if not isinstance(self.precise_borrow_extents, bool):
			raise ConfigError("precise_borrow_extents must be a boolean")
		if self.max_statements is not None:
			if isinstance(self.max_statements, bool) or not isinstance(self.max_statements, int) or self.max_statements < 0:
				raise ConfigError("max_statements must be a non-negative integer")
		if self.jobs is not None:
			if isinstance(self.jobs, bool) or not isinstance(self.jobs, int) or self.jobs < 1:
				raise ConfigError("jobs must be a positive integer")

	@classmethod
	def from_mapping(cls, data: Mapping[str, Any]) -> "CheckerConfig":
		kwargs: dict[str, Any] = {}
		for key, value in data.items():
			attr = _KEYS.get(key)
			if attr is None:
				raise ConfigError(f"unknown configuration option '{key}'")
			kwargs[attr] = value
		return cls(**kwargs)

	def with_overrides(self, **overrides: Any) -> "CheckerConfig":
		"""Return a copy with every non-None override applied."""
		return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config(path: Path) -> CheckerConfig:
	try:
		text = path.read_text()
	except OSError as exc:
		raise ConfigError(f"cannot read config file {path}: {exc.strerror or exc}") from exc
	try:
		data = json.loads(text)
	except json.JSONDecodeError as exc:
		raise ConfigError(f"invalid JSON in config file {path}: {exc}") from exc
	if not isinstance(data, dict):
		raise ConfigError(f"config file {path} must contain a JSON object")
	return CheckerConfig.from_mapping(data)


__all__ = ["CheckerConfig", "load_config"]
