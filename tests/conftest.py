import asyncio
from pathlib import Path
from typing import Callable

import pytest

from unbundled.plugins.container import Plugin, PluginContext


class CountingPlugin(Plugin):
	"""Passes code through unchanged, counting the transforms and optionally
	taking some time to do so."""

	NAME = "counting"

	def __init__(self, delay: float = 0.0):
		self.count: int = 0
		self.delay: float = delay
		self.changes: list[str] = []

	async def transform(self, context: PluginContext, code: str, id: str) -> str | None:
		self.count += 1
		if self.delay:
			await asyncio.sleep(self.delay)
		return code

	def watchChange(self, context: PluginContext, path: str) -> None:
		self.changes.append(path)


@pytest.fixture
def project(tmp_path: Path) -> Callable[..., Path]:
	"""Writes the given files (as `name=content` pairs, or a dict) in a
	temporary project directory, which is returned."""

	def write(files: dict[str, str] | None = None, **kwargs: str) -> Path:
		for name, content in {**(files or {}), **kwargs}.items():
			path = tmp_path / name
			path.parent.mkdir(parents=True, exist_ok=True)
			path.write_text(content, "utf8")
		return tmp_path

	return write


@pytest.fixture
def counter() -> CountingPlugin:
	return CountingPlugin()


@pytest.fixture
def slowCounter() -> CountingPlugin:
	return CountingPlugin(delay=0.02)
