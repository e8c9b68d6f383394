import asyncio
import re
from pathlib import Path
from typing import Awaitable, Callable, Pattern, TypeAlias

from extra.utils.logging import debug, logged, warning

TContent: TypeAlias = str | bytes

# Scoped stylesheets have a generated proxy module, with a `.js` suffix.
RE_SCOPED_STYLESHEET: Pattern[str] = re.compile(r"\.module\.css$")


class CacheStore:
	"""In-memory store of generated files, keyed by module id and mirrored
	to the `out` directory. The store is the single source of truth for
	whether a module needs to be regenerated.

	Entries carry no timestamps: an entry is valid until invalidated. Each
	invalidation bumps the id's generation, so that a transform that started
	before the change can't write its result back (see `put`)."""

	def __init__(self, out: Path | str):
		self.out: Path = Path(out).absolute()
		self.entries: dict[str, TContent] = {}
		self.generations: dict[str, int] = {}
		self.inflight: dict[tuple[str, int], asyncio.Task[TContent]] = {}
		self.writes: set[asyncio.Task[None]] = set()

	def has(self, id: str) -> bool:
		return id in self.entries

	def get(self, id: str) -> TContent | None:
		return self.entries.get(id)

	def generation(self, id: str) -> int:
		return self.generations.get(id, 0)

	def put(self, id: str, content: TContent, generation: int | None = None) -> bool:
		"""Stores the content in memory and schedules the disk mirror write.
		When `generation` is given and the id was invalidated since, the
		content is stale and is not stored."""
		if generation is not None and generation != self.generation(id):
			logged(debug) and debug(
				"Dropping stale cache write", Id=id, Generation=generation
			)
			return False
		self.entries[id] = content
		self.mirror(id, content)
		return True

	def invalidate(self, id: str) -> list[str]:
		"""Removes the entry for `id`, and for its CSS Modules proxy
		when `id` is a scoped stylesheet. Returns the invalidated ids."""
		ids: list[str] = [id]
		if RE_SCOPED_STYLESHEET.search(id):
			ids.append(f"{id}.js")
		for _ in ids:
			self.entries.pop(_, None)
			self.generations[_] = self.generation(_) + 1
		return ids

	def clear(self) -> None:
		for id in list(self.entries):
			self.invalidate(id)

	async def produce(
		self, id: str, compute: Callable[[], Awaitable[TContent]]
	) -> TContent:
		"""Returns the cached content for `id`, or computes and stores it.
		Concurrent requests for the same id (and generation) share a single
		computation."""
		if (content := self.get(id)) is not None:
			return content
		key: tuple[str, int] = (id, self.generation(id))
		task = self.inflight.get(key)
		if task is None:
			task = asyncio.ensure_future(self._produce(id, key[1], compute))
			self.inflight[key] = task
			task.add_done_callback(lambda _: self.inflight.pop(key, None))
		return await asyncio.shield(task)

	async def _produce(
		self, id: str, generation: int, compute: Callable[[], Awaitable[TContent]]
	) -> TContent:
		content = await compute()
		self.put(id, content, generation)
		return content

	# =========================================================================
	# DISK MIRROR
	# =========================================================================

	def mirror(self, id: str, content: TContent) -> asyncio.Task[None] | None:
		"""Schedules the writing of the content in the output directory. The
		write is not awaited: the mirror is a convenience artifact."""
		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			# No loop, so nothing to schedule the write on.
			return None
		task = loop.create_task(self.write(id, content))
		self.writes.add(task)
		task.add_done_callback(self.writes.discard)
		return task

	async def write(self, id: str, content: TContent) -> None:
		path = self.out / id
		try:
			await asyncio.to_thread(self._write, path, content)
		except OSError as e:
			warning("Could not write cache mirror", Id=id, Path=str(path), Error=str(e))

	@staticmethod
	def _write(path: Path, content: TContent) -> None:
		path.parent.mkdir(parents=True, exist_ok=True)
		if isinstance(content, bytes):
			path.write_bytes(content)
		else:
			path.write_text(content, "utf8")

	async def flush(self) -> None:
		"""Waits for the pending mirror writes."""
		while self.writes:
			await asyncio.gather(*list(self.writes))

	def __contains__(self, id: str) -> bool:
		return self.has(id)

	def __len__(self) -> int:
		return len(self.entries)


# EOF
