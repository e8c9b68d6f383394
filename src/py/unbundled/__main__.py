import argparse
from typing import Sequence

from extra import run
from extra.utils.logging import LogOrigin, info

from . import config, serve


def parseAliases(values: Sequence[str]) -> dict[str, str]:
	res: dict[str, str] = {}
	for value in values:
		name, sep, path = value.partition("=")
		if not sep:
			raise argparse.ArgumentTypeError(f"Expected NAME=PATH, got: {value}")
		res[name] = path
	return res


def main(args: Sequence[str] | None = None) -> None:
	parser = argparse.ArgumentParser(
		prog="unbundled",
		description="On-demand, no-bundling development server",
	)
	parser.add_argument("--cwd", default=".", help="Directory to serve")
	parser.add_argument("--root", help="Project root, where package.json is")
	parser.add_argument("--out", default=config.OUT, help="Generated files directory")
	parser.add_argument("--dist", default=config.DIST, help="Build directory, not watched")
	parser.add_argument("--host", default=config.HOST)
	parser.add_argument("--port", type=int, default=config.PORT)
	parser.add_argument(
		"--alias", action="append", default=[], metavar="NAME=PATH", help="Import alias"
	)
	parser.add_argument("--sourcemap", action="store_true", help="Inline sourcemaps")
	parser.add_argument("--profile", action="store_true", help="Log transform durations")
	options = parser.parse_args(args)
	try:
		aliases = parseAliases(options.alias)
	except argparse.ArgumentTypeError as e:
		parser.error(str(e))
	LogOrigin.set("unbundled")
	info("Starting unbundled dev server", Path=options.cwd)
	run(
		serve(
			cwd=options.cwd,
			root=options.root,
			out=options.out,
			distDir=options.dist,
			aliases=aliases,
			sourcemap=options.sourcemap,
			profile=options.profile,
		),
		host=options.host,
		port=options.port,
		logRequests=config.LOG_REQUESTS,
	)


if __name__ == "__main__":
	main()

# EOF
