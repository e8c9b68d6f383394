import json
from pathlib import Path
from typing import Any, Callable, ClassVar, Iterable, NamedTuple

from extra.utils.logging import debug, logged

from ..errors import Skip, TransformError

# --
# # Plugin Container
#
# Sequences the hooks of a list of plugins, Rollup-style: `load` and
# `resolveId`/`resolveImportMeta` return the first non-`None` result, while
# `transform` chains each plugin's output into the next one.

ASSET_URL_PREFIX: str = "ASSET_URL_"

TWriteFile = Callable[[str, str | bytes], Any]


class LoadResult(NamedTuple):
	code: str
	map: str | None = None


class Asset(NamedTuple):
	referenceId: str
	fileName: str
	source: str | bytes


class PluginContext:
	"""The context given to plugin hooks. Emitted assets are identified by
	reference ids that are only unique within one context."""

	def __init__(self, cwd: Path, writeFile: TWriteFile | None = None):
		self.cwd: Path = cwd
		self.writeFile: TWriteFile | None = writeFile
		self.assets: dict[str, Asset] = {}

	def emitFile(self, fileName: str, source: str | bytes) -> str:
		"""Emits an asset, returning its reference id. Use
		`import.meta.ASSET_URL_<referenceId>` to refer to its URL."""
		reference = str(len(self.assets) + 1)
		self.assets[reference] = Asset(reference, fileName, source)
		if self.writeFile:
			self.writeFile(fileName, source)
		return reference

	def assetURL(self, reference: str) -> str | None:
		asset = self.assets.get(reference)
		return f"/{asset.fileName}" if asset else None


class Plugin:
	"""Base class for plugins, all hooks are optional."""

	NAME: ClassVar[str] = "plugin"

	def buildStart(self, context: PluginContext) -> None:
		pass

	def watchChange(self, context: PluginContext, path: str) -> None:
		pass

	async def load(self, context: PluginContext, file: str) -> str | LoadResult | None:
		return None

	async def transform(self, context: PluginContext, code: str, id: str) -> str | None:
		return None

	def resolveId(self, context: PluginContext, spec: str, importer: str) -> str | None:
		return None

	def resolveImportMeta(self, context: PluginContext, property: str) -> str | None:
		return None

	def __repr__(self) -> str:
		return f"(Plugin {self.NAME})"


class PluginContainer:
	def __init__(
		self,
		plugins: Iterable[Plugin],
		*,
		cwd: Path | str,
		writeFile: TWriteFile | None = None,
	):
		self.plugins: list[Plugin] = list(plugins)
		self.context: PluginContext = PluginContext(Path(cwd).absolute(), writeFile)

	def buildStart(self) -> None:
		for plugin in self.plugins:
			plugin.buildStart(self.context)

	def watchChange(self, path: str) -> None:
		for plugin in self.plugins:
			plugin.watchChange(self.context, path)

	async def load(self, file: str) -> str | None:
		for plugin in self.plugins:
			res = await plugin.load(self.context, file)
			if res is None:
				continue
			return res.code if isinstance(res, LoadResult) else res
		return None

	async def transform(self, code: str, id: str) -> str:
		for plugin in self.plugins:
			try:
				res = await plugin.transform(self.context, code, id)
			except (Skip, TransformError):
				raise
			except Exception as e:
				raise TransformError(f"{plugin.NAME}: {e}", id) from e
			if res is not None:
				logged(debug) and debug(
					"Transformed", Plugin=plugin.NAME, Id=id
				)
				code = res
		return code

	def resolveId(self, spec: str, importer: str) -> str | None:
		for plugin in self.plugins:
			if (res := plugin.resolveId(self.context, spec, importer)) is not None:
				return res
		return None

	def resolveImportMeta(self, property: str) -> str | None:
		for plugin in self.plugins:
			if (res := plugin.resolveImportMeta(self.context, property)) is not None:
				return res
		if property.startswith(ASSET_URL_PREFIX):
			url = self.context.assetURL(property[len(ASSET_URL_PREFIX) :])
			return json.dumps(url) if url else None
		return None


def createContainer(
	plugins: Iterable[Plugin],
	*,
	cwd: Path | str,
	writeFile: TWriteFile | None = None,
) -> PluginContainer:
	return PluginContainer(plugins, cwd=cwd, writeFile=writeFile)


# EOF
