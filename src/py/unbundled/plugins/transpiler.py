import asyncio
import os
import shutil
import subprocess  # nosec: B404

from .container import Plugin, PluginContext
from ..errors import TransformError

# The esbuild loader for each source dialect, plain JavaScript is served
# as is.
LOADERS: dict[str, str] = {
	".ts": "ts",
	".mts": "ts",
	".cts": "ts",
	".tsx": "tsx",
	".jsx": "jsx",
}


class TranspilerPlugin(Plugin):
	"""Transpiles TypeScript and JSX to ES modules by piping the source
	through the `esbuild` binary (found with `$ESBUILD` or on the `PATH`)."""

	NAME = "transpiler"

	def __init__(
		self,
		sourcemap: bool = False,
		*,
		command: str | None = None,
		jsxFactory: str | None = None,
		jsxFragment: str | None = None,
	):
		self.sourcemap: bool = sourcemap
		self.command: str | None = (
			command or os.getenv("ESBUILD") or shutil.which("esbuild")
		)
		self.jsxFactory: str | None = jsxFactory
		self.jsxFragment: str | None = jsxFragment

	def arguments(self, loader: str, id: str) -> list[str]:
		args: list[str] = [
			f"--loader={loader}",
			"--format=esm",
			f"--sourcefile={id}",
		]
		if self.sourcemap:
			args.append("--sourcemap=inline")
		if self.jsxFactory:
			args.append(f"--jsx-factory={self.jsxFactory}")
		if self.jsxFragment:
			args.append(f"--jsx-fragment={self.jsxFragment}")
		return args

	async def transform(self, context: PluginContext, code: str, id: str) -> str | None:
		loader = LOADERS.get(os.path.splitext(id)[1])
		if not loader:
			return None
		if not self.command:
			raise TransformError(
				"Cannot transpile module, esbuild is not installed (set $ESBUILD)",
				id,
			)
		process = await asyncio.create_subprocess_exec(
			self.command,
			*self.arguments(loader, id),
			stdin=subprocess.PIPE,
			stdout=subprocess.PIPE,
			stderr=subprocess.PIPE,
		)
		out, err = await process.communicate(code.encode("utf8"))
		if process.returncode != 0:
			raise TransformError(err.decode("utf8", "replace").strip(), id)
		return out.decode("utf8")


# EOF
