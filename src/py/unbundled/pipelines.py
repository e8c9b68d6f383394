from pathlib import Path
from typing import Callable, Final, Iterable, NamedTuple, TypeAlias

from extra.utils.logging import warning

from .cache import CacheStore, TContent
from .errors import TransformError
from .plugins.container import Plugin, PluginContainer, TWriteFile, createContainer
from .plugins.runtime import HMR_PATH, RuntimePlugin, runtimeClient
from .plugins.styles import RE_SCOPED, StylesPlugin, modularizeCss
from .rewrite import (
	RUNTIME_CLIENT_PATH,
	RUNTIME_MODULE,
	resolveSpecifier,
	transformImports,
)
from .selector import PipelineKind
from .utils.files import readText

JAVASCRIPT: Final = "application/javascript"
CSS: Final = "text/css"

# -----------------------------------------------------------------------------
#
# RESULTS
#
# -----------------------------------------------------------------------------


class Handled(NamedTuple):
	"""The pipeline produced the response content."""

	content: TContent
	contentType: str | None = None


class NotHandled:
	"""The pipeline declined the request, which goes to the next handler."""

	def __repr__(self) -> str:
		return "NOT_HANDLED"


NOT_HANDLED: Final = NotHandled()

TResult: TypeAlias = Handled | NotHandled

TContainerFactory = Callable[..., PluginContainer]


class RequestContext(NamedTuple):
	"""What a pipeline needs to know about a request."""

	path: str
	file: str
	id: str
	cwd: Path
	out: Path
	container: PluginContainer


# -----------------------------------------------------------------------------
#
# PIPELINES
#
# -----------------------------------------------------------------------------


class Pipelines:
	"""The transform pipelines. Each one checks the cache before doing any
	work and populates it with its result, except the runtime client which
	is generated on every request."""

	def __init__(
		self,
		cache: CacheStore,
		*,
		createContainer: TContainerFactory = createContainer,
		hmrPath: str = HMR_PATH,
		liveReload: bool = True,
	):
		self.cache: CacheStore = cache
		self.createContainer: TContainerFactory = createContainer
		self.hmrPath: str = hmrPath
		self.liveReload: bool = liveReload

	async def run(self, kind: PipelineKind, context: RequestContext) -> TResult:
		match kind:
			case PipelineKind.RuntimeClient:
				return self.runtimeClient(context)
			case PipelineKind.CSSModuleProxy:
				return await self.cssModule(context)
			case PipelineKind.Module:
				return await self.js(context)
			case PipelineKind.Stylesheet:
				return await self.css(context)
			case PipelineKind.Passthrough:
				return self.generic(context)

	def runtimeClient(self, context: RequestContext) -> TResult:
		return Handled(runtimeClient(self.hmrPath, self.liveReload), JAVASCRIPT)

	async def js(self, context: RequestContext) -> TResult:
		"""Transforms individual JavaScript and TypeScript modules."""
		container = context.container

		def resolveId(spec: str, importer: str) -> str:
			return resolveSpecifier(container.resolveId(spec, importer) or spec)

		async def compute() -> str:
			code = await readText(context.file)
			code = await container.transform(code, context.id)
			return transformImports(
				code, context.id, resolveId, container.resolveImportMeta
			)

		return Handled(await self.cache.produce(context.id, compute), JAVASCRIPT)

	async def cssModule(self, context: RequestContext) -> TResult:
		"""Generates the proxy module of a stylesheet (`style.module.css.js`)."""

		def resolveId(spec: str, importer: str) -> str | None:
			if spec == RUNTIME_MODULE:
				return RUNTIME_CLIENT_PATH
			warning("Unresolved specifier", Spec=spec, Id=importer)
			return None

		async def compute() -> str:
			file = context.file.removesuffix(".js")
			# NOTE: Each request gets its own container, as emitted assets
			# are numbered per container and concurrent requests would
			# otherwise clash.
			container = self.stylesContainer(
				context.cwd, self.writeFile(context.id.removesuffix(".js"))
			)
			code = await container.load(file)
			if code is None:
				raise TransformError("No plugin could load the stylesheet", context.id)
			code = await container.transform(code, context.id)
			return transformImports(
				code, context.id, resolveId, container.resolveImportMeta
			)

		return Handled(await self.cache.produce(context.id, compute), JAVASCRIPT)

	async def css(self, context: RequestContext) -> TResult:
		"""Serves scoped stylesheets, other stylesheets are served as is by
		the next handler."""
		if not RE_SCOPED.search(context.path):
			return NOT_HANDLED

		async def compute() -> str:
			return modularizeCss(await readText(context.file), context.id).css

		return Handled(await self.cache.produce(context.id, compute), CSS)

	def generic(self, context: RequestContext) -> TResult:
		return NOT_HANDLED

	def stylesContainer(self, cwd: Path, writeFile: TWriteFile) -> PluginContainer:
		plugins: Iterable[Plugin] = (RuntimePlugin(), StylesPlugin(cwd))
		return self.createContainer(plugins, cwd=cwd, writeFile=writeFile)

	def writeFile(self, *ids: str) -> TWriteFile:
		"""Returns the callback storing emitted assets. The generations of
		`ids` are taken now: an asset emitted after its id was invalidated
		is stale and dropped."""
		generations: dict[str, int] = {_: self.cache.generation(_) for _ in ids}

		def write(fileName: str, source: TContent) -> bool:
			return self.cache.put(fileName, source, generations.get(fileName))

		return write


# EOF
