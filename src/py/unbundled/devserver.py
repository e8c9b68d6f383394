import asyncio
import posixpath
import time
from pathlib import Path
from typing import Any, Iterable

from extra import HTTPRequest, HTTPResponse, on
from extra.services.files import FileService
from extra.utils.logging import event, exception, info

from .cache import CacheStore
from .config import DevServerOptions
from .errors import Skip
from .livereload import LiveReload
from .pipelines import NotHandled, Pipelines, RequestContext
from .plugins.aliases import AliasesPlugin
from .plugins.container import Plugin, PluginContainer, createContainer
from .plugins.runtime import HMR_PATH, RuntimePlugin
from .plugins.transpiler import TranspilerPlugin
from .rewrite import NPM_PREFIX
from .selector import resolveTypedPath, select
from .utils.files import contentType, moduleId
from .watcher import ChangeEvent, ChangeWatcher


def defaultPlugins(options: DevServerOptions) -> list[Plugin]:
	return [
		TranspilerPlugin(sourcemap=options.sourcemap),
		AliasesPlugin(options.aliases),
		RuntimePlugin(hot=True),
	]


class DevServer(FileService):
	"""Serves the files of `cwd`, transforming source modules as they are
	requested. Anything no pipeline handles is served as a raw file."""

	def __init__(
		self,
		options: DevServerOptions | None = None,
		*,
		plugins: Iterable[Plugin] | None = None,
		cache: CacheStore | None = None,
		watch: bool = True,
		**kwargs: Any,
	):
		self.options: DevServerOptions = DevServerOptions.Make(
			**(options._asdict() if options else kwargs)
		)
		super().__init__(self.options.cwd)
		self.cwd: Path = self.options.cwd
		self.cache: CacheStore = cache or CacheStore(self.options.outPath)
		self.liveReload: LiveReload = LiveReload()
		self.container: PluginContainer = createContainer(
			defaultPlugins(self.options) if plugins is None else plugins,
			cwd=self.options.root or self.cwd,
		)
		self.pipelines: Pipelines = Pipelines(self.cache)
		self.watch: bool = watch
		self.watcher: ChangeWatcher = ChangeWatcher(
			self.cwd,
			self.cache,
			manifest=(self.options.root or self.cwd) / "package.json",
			ignore=(self.options.outPath, self.options.distPath),
			onChange=self.onChange,
			onInvalidate=self.container.watchChange,
		)
		self.watching: asyncio.Task[None] | None = None
		self.container.buildStart()

	async def start(self) -> None:
		if self.watch and not self.watching:
			self.watching = asyncio.create_task(self.watcher.run())
		info("Serving modules", Path=str(self.cwd), Out=str(self.options.outPath))

	async def stop(self) -> None:
		self.watcher.stop()
		if self.watching:
			self.watching.cancel()
			await asyncio.gather(self.watching, return_exceptions=True)
			self.watching = None
		self.liveReload.close()
		await self.cache.flush()

	def onChange(self, change: ChangeEvent) -> None:
		self.liveReload.publish(change)
		if self.options.onChange:
			self.options.onChange(change)

	def onError(self, error: Exception) -> None:
		if self.options.onError:
			try:
				self.options.onError(error)
			except Exception as e:
				exception(e, "Error callback failed")

	def guessContentType(self, path: Path) -> str | None:
		return super().guessContentType(path) or contentType(path)

	@on(priority=10, GET=HMR_PATH)
	def events(self, request: HTTPRequest) -> HTTPResponse:
		"""The live reload event stream."""
		return request.respond(
			self.liveReload.stream(),
			contentType="text/event-stream",
			headers={"Cache-Control": "no-cache"},
		)

	@on(GET=("/", "/{path:any}"))
	async def read(self, request: HTTPRequest, path: str = ".") -> HTTPResponse:
		try:
			res = await self.transform(request)
		except Exception as e:
			exception(e, "Transform failed")
			return request.fail(str(e))
		return super().read(request, path) if res is None else res

	async def transform(self, request: HTTPRequest) -> HTTPResponse | None:
		"""Runs the pipeline selected for the request, returning `None` when
		the request is left to the file service."""
		path = posixpath.normpath(f"/{request.path.lstrip('/')}")
		# Packages are resolved by another handler
		if path.startswith(NPM_PREFIX):
			return None
		file = posixpath.join(self.cwd.as_posix(), path.lstrip("/"))
		file = await resolveTypedPath(
			file, path, request.header("Referer"), self.cache, str(self.cwd)
		)
		id = moduleId(file, self.cwd)
		kind = select(path, file)
		context = RequestContext(
			path=path,
			file=file,
			id=id,
			cwd=self.cwd,
			out=self.options.outPath,
			container=self.container,
		)
		start = time.perf_counter()
		try:
			result = await self.pipelines.run(kind, context)
		except Skip:
			return None
		except Exception as e:
			self.onError(e)
			raise
		if isinstance(result, NotHandled):
			return None
		duration = round((time.perf_counter() - start) * 1000)
		if self.options.profile:
			event("Transform", id, Pipeline=kind.value, Duration=duration)
		return request.respond(
			result.content,
			contentType=result.contentType or contentType(file),
			headers={"Server-Timing": f"{kind.value};dur={duration}"},
		)


# EOF
