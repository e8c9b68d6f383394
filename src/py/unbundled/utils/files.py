import asyncio
import mimetypes
import posixpath
from pathlib import Path

mimetypes.init()

# NOTE: `mimetypes` maps `.ts` to MPEG transport streams and knows nothing of
# `.tsx`/`.jsx`, so source dialects are declared explicitly.
MIME_TYPES: dict[str, str] = dict(
	js="application/javascript",
	mjs="application/javascript",
	cjs="application/javascript",
	jsx="application/javascript",
	ts="application/javascript",
	tsx="application/javascript",
	css="text/css",
	scss="text/x-scss",
	sass="text/x-sass",
	json="application/json",
	map="application/json",
	html="text/html",
	svg="image/svg+xml",
	wasm="application/wasm",
)


def contentType(path: Path | str) -> str | None:
	"""Guesses the content type from the given path, returning `None` when
	the extension is unknown."""
	name = str(path)
	ext: str = name.rsplit(".", 1)[-1].lower() if "." in name else ""
	return res if (res := MIME_TYPES.get(ext)) else mimetypes.guess_type(name)[0]


def moduleId(file: Path | str, cwd: Path | str) -> str:
	"""Returns the cwd-relative, slash-separated id for `file`."""
	rel = posixpath.relpath(Path(file).as_posix(), Path(cwd).as_posix())
	return rel[2:] if rel.startswith("./") else rel


def isFile(path: Path | str) -> bool:
	try:
		return Path(path).is_file()
	except OSError:
		return False


async def readText(path: Path | str, encoding: str = "utf8") -> str:
	"""Reads the text at the given path without blocking the event loop."""
	return await asyncio.to_thread(Path(path).read_text, encoding)


# EOF
