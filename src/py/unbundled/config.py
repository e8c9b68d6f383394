from os import getenv
from pathlib import Path
from typing import Any, Callable, NamedTuple

PORT: int = int(getenv("PORT", 8080))

# The dev server is meant for local development, so it only listens locally
# unless told otherwise.
HOST: str = getenv("HOST", "127.0.0.1")

LOG_REQUESTS: bool = getenv("UNBUNDLED_LOG_REQUESTS", "1") == "1"

# Directory where generated files are mirrored, relative to the cwd
OUT: str = getenv("UNBUNDLED_OUT", ".dist")

# Build output directory, excluded from watching
DIST: str = getenv("UNBUNDLED_DIST", "dist")

DEFAULT_ENCODING: str = "utf8"


class DevServerOptions(NamedTuple):
	"""Options of the dev server middleware."""

	cwd: Path = Path(".")
	# Project root, defaults to `cwd`, where `package.json` is watched.
	root: Path | None = None
	out: str = OUT
	distDir: str = DIST
	sourcemap: bool = False
	aliases: dict[str, str] | None = None
	# Logs the duration of every transform
	profile: bool = False
	onError: Callable[[BaseException], Any] | None = None
	onChange: Callable[[Any], Any] | None = None

	@staticmethod
	def Make(**options: Any) -> "DevServerOptions":
		"""Creates normalized options, with absolute paths."""
		res = DevServerOptions(**options)
		cwd = Path(res.cwd).absolute()
		return res._replace(
			cwd=cwd,
			root=Path(res.root).absolute() if res.root else cwd,
			aliases=dict(res.aliases or {}),
		)

	@property
	def outPath(self) -> Path:
		return Path(self.cwd, self.out).absolute()

	@property
	def distPath(self) -> Path:
		# The dist directory is a sibling of `out`
		return Path(self.cwd, self.out).parent.joinpath(self.distDir).absolute()


# EOF
