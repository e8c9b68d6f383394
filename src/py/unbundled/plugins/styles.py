import hashlib
import json
import re
from pathlib import Path
from typing import NamedTuple, Pattern

from .container import ASSET_URL_PREFIX, LoadResult, Plugin, PluginContext
from ..rewrite import RUNTIME_MODULE
from ..utils.files import moduleId, readText

# --
# # CSS Modules
#
# Scoped stylesheets (`*.module.css`) have their class names suffixed with a
# hash of their module id, so that the same class name in two stylesheets
# never clashes. Selectors wrapped in `:global(...)` are left untouched.

RE_SCOPED: Pattern[str] = re.compile(r"\.module\.css$")
RE_COMMENT: Pattern[str] = re.compile(r"/\*.*?\*/", re.S)
# A rule prelude, up to the opening brace of its block.
RE_PRELUDE: Pattern[str] = re.compile(r"(?P<prelude>[^{};]+)\{")
RE_SELECTOR: Pattern[str] = re.compile(
	r"""
	(?P<string>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')
	|(?P<glob>:global\(\s*(?P<inner>[^()]*(?:\([^()]*\)[^()]*)*?)\s*\))
	|\.(?P<name>-?[_a-zA-Z][\w-]*)
	""",
	re.X,
)
RE_IDENTIFIER: Pattern[str] = re.compile(r"^[A-Za-z_$][\w$]*$")
RESERVED: frozenset[str] = frozenset(
	"""break case catch class const continue debugger default delete do else
	enum export extends false finally for function if import in instanceof new
	null return super switch this throw true try typeof var void while with
	yield let static await""".split()
)


class ScopedStylesheet(NamedTuple):
	css: str
	mappings: dict[str, str]


def scopeHash(id: str) -> str:
	return hashlib.sha1(id.encode("utf8"), usedforsecurity=False).hexdigest()[:5]


def modularizeCss(css: str, id: str) -> ScopedStylesheet:
	"""Rewrites the class selectors of `css` into locally unique names
	derived from the module `id`, returning the CSS and the mappings from
	original to hashed class names."""
	suffix: str = f"_{scopeHash(id)}"
	mappings: dict[str, str] = {}

	def scopeSelector(match: re.Match[str]) -> str:
		if match.group("string"):
			return match.group(0)
		elif match.group("glob") is not None:
			return match.group("inner")
		else:
			name = match.group("name")
			scoped = mappings.setdefault(name, f"{name}{suffix}")
			return f".{scoped}"

	def scopePrelude(match: re.Match[str]) -> str:
		prelude = match.group("prelude")
		if prelude.lstrip().startswith("@"):
			return match.group(0)
		return RE_SELECTOR.sub(scopeSelector, prelude) + "{"

	return ScopedStylesheet(
		RE_PRELUDE.sub(scopePrelude, RE_COMMENT.sub("", css)), mappings
	)


def camelCase(name: str) -> str:
	return re.sub(r"-+([a-zA-Z0-9])", lambda _: _.group(1).upper(), name)


def proxyModule(mappings: dict[str, str], url: str) -> str:
	"""Generates the CSS Modules proxy module: it loads the stylesheet at
	`url` (a JavaScript expression) and exports the class name mappings."""
	lines: list[str] = [
		f"import {{ style }} from '{RUNTIME_MODULE}';",
		f"style({url});",
		f"export default {json.dumps(mappings)};",
	]
	exported: set[str] = set()
	for name, scoped in mappings.items():
		key = camelCase(name)
		if key in exported or key in RESERVED or not RE_IDENTIFIER.match(key):
			continue
		exported.add(key)
		lines.append(f"export const {key} = {json.dumps(scoped)};")
	return "\n".join(lines) + "\n"


class StylesPlugin(Plugin):
	"""Loads stylesheets as proxy modules. Scoped stylesheets have their
	CSS emitted as an asset, other stylesheets are served as is."""

	NAME = "styles"

	def __init__(self, cwd: Path | str):
		self.cwd: Path = Path(cwd).absolute()

	async def load(self, context: PluginContext, file: str) -> LoadResult | None:
		if not file.endswith(".css"):
			return None
		id = moduleId(file, self.cwd)
		if not RE_SCOPED.search(file):
			if not Path(file).is_file():
				raise FileNotFoundError(f"Stylesheet not found: {file}")
			return LoadResult(proxyModule({}, json.dumps(f"/{id}")))
		scoped = modularizeCss(await readText(file), id)
		reference = context.emitFile(id, scoped.css)
		return LoadResult(
			proxyModule(scoped.mappings, f"import.meta.{ASSET_URL_PREFIX}{reference}")
		)


# EOF
