import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, NamedTuple

from extra.utils.logging import event, exception, info
from watchfiles import Change, DefaultFilter, awatch

from .cache import CacheStore
from .utils.files import moduleId

# Delay between the first unflushed change and the change notification
DEBOUNCE: float = 0.06

IGNORED_DIRS: tuple[str, ...] = ("node_modules", ".git")
IGNORED_FILES: tuple[str, ...] = (r"\.DS_Store",)


class ChangeEvent(NamedTuple):
	"""Aggregated notification of the paths changed during a debounce window."""

	changes: list[str]
	duration: float


@dataclass(slots=True)
class Pending:
	"""A batch of changes waiting for its flush timer."""

	changes: dict[str, None] = field(default_factory=dict)
	timer: asyncio.TimerHandle | None = None
	started: float = field(default_factory=time.monotonic)


class ChangeWatcher:
	"""Watches the source tree, invalidating the cache synchronously with
	each filesystem event and batching notifications. The watcher is either
	idle (`pending is None`) or pending, with a batch and its timer."""

	def __init__(
		self,
		cwd: Path,
		cache: CacheStore,
		*,
		manifest: Path | None = None,
		ignore: Iterable[Path] = (),
		onChange: Callable[[ChangeEvent], Any] | None = None,
		onInvalidate: Callable[[str], Any] | None = None,
		debounce: float = DEBOUNCE,
	):
		self.cwd: Path = cwd
		self.cache: CacheStore = cache
		self.manifest: Path | None = manifest
		self.ignore: list[Path] = list(ignore)
		self.onChange: Callable[[ChangeEvent], Any] | None = onChange
		self.onInvalidate: Callable[[str], Any] | None = onInvalidate
		self.debounce: float = debounce
		self.pending: Pending | None = None
		self.stopEvent: asyncio.Event = asyncio.Event()

	@property
	def paths(self) -> list[Path]:
		res: list[Path] = [self.cwd]
		# The manifest may live outside of the cwd (`root` is the parent of
		# a `public/` cwd), and it has to exist to be watched.
		if (
			self.manifest
			and self.manifest.exists()
			and self.cwd not in self.manifest.parents
		):
			res.append(self.manifest)
		return res

	def changed(self, path: str | Path) -> str:
		"""Processes the change of the file at the given (absolute or
		cwd-relative) path, returning its module id."""
		file = Path(self.cwd, path)
		if self.onInvalidate:
			self.onInvalidate(str(file))
		id = moduleId(file, self.cwd)
		# The cache invalidation must be visible to the next request, before
		# the notification fires.
		self.cache.invalidate(id)
		if self.pending is None:
			self.pending = Pending()
			self.pending.timer = asyncio.get_running_loop().call_later(
				self.debounce, self.flush
			)
		self.pending.changes[f"/{id}"] = None
		return id

	def flush(self) -> ChangeEvent | None:
		"""Sends the pending changes and goes back to idle."""
		pending, self.pending = self.pending, None
		if pending is None:
			return None
		if pending.timer:
			pending.timer.cancel()
		res = ChangeEvent(
			list(pending.changes), round((time.monotonic() - pending.started) * 1000)
		)
		event("Changed", res.changes, Duration=res.duration)
		if self.onChange:
			try:
				self.onChange(res)
			except Exception as e:
				exception(e, "Change callback failed")
		return res

	async def run(self) -> None:
		"""Watches the filesystem until `stop()` is called."""
		watch_filter = DefaultFilter(
			ignore_dirs=IGNORED_DIRS,
			ignore_entity_patterns=IGNORED_FILES,
			ignore_paths=self.ignore,
		)
		info("Watching for changes", Path=str(self.cwd))
		async for changes in awatch(
			*self.paths,
			watch_filter=watch_filter,
			stop_event=self.stopEvent,
			step=10,
			debounce=int(self.debounce * 1000) or 1,
		):
			for kind, path in sorted(changes, key=lambda _: _[1]):
				if kind in (Change.modified, Change.added, Change.deleted):
					self.changed(path)

	def stop(self) -> None:
		self.stopEvent.set()
		self.flush()


# EOF
