import asyncio
import re
from enum import Enum
from typing import Pattern

from .cache import CacheStore
from .rewrite import RUNTIME_CLIENT_PATH
from .utils.files import isFile, moduleId


class PipelineKind(Enum):
	"""The transform pipelines, one per kind of request."""

	RuntimeClient = "runtimeClient"
	CSSModuleProxy = "cssModule"
	Module = "js"
	Stylesheet = "css"
	Passthrough = "generic"


RE_CSS_MODULE_PROXY: Pattern[str] = re.compile(r"\.css\.js$")
RE_MODULE: Pattern[str] = re.compile(r"\.([mc]js|[tj]sx?)$")
RE_STYLESHEET: Pattern[str] = re.compile(r"\.(css|s[ac]ss)$")
RE_TYPED_REFERER: Pattern[str] = re.compile(r"\.([tj]sx?)$")
RE_EXTENSION: Pattern[str] = re.compile(r"\.\w{2,}$")

# Tried in order when a typed module imports a path without extension.
TYPED_EXTENSIONS: tuple[str, ...] = (".tsx", ".ts")


def select(path: str, file: str) -> PipelineKind:
	"""Selects the pipeline for a request, given its normalized path and the
	resolved file path."""
	if path == RUNTIME_CLIENT_PATH:
		return PipelineKind.RuntimeClient
	elif RE_CSS_MODULE_PROXY.search(file):
		return PipelineKind.CSSModuleProxy
	elif RE_MODULE.search(file):
		return PipelineKind.Module
	elif RE_STYLESHEET.search(file):
		return PipelineKind.Stylesheet
	else:
		return PipelineKind.Passthrough


async def resolveTypedPath(
	file: str, path: str, referer: str | None, cache: CacheStore, cwd: str
) -> str:
	"""TypeScript import paths conventionally omit the `.ts`/`.tsx`
	extension. When the request comes from a module and has no extension,
	we look for the concrete file: in-memory cache first, then the disk."""
	if not (referer and RE_TYPED_REFERER.search(referer)) or RE_EXTENSION.search(
		path
	):
		return file
	for ext in TYPED_EXTENSIONS:
		if cache.has(moduleId(file + ext, cwd)):
			return file + ext
	for ext in TYPED_EXTENSIONS:
		if await asyncio.to_thread(isFile, file + ext):
			return file + ext
	return file


# EOF
