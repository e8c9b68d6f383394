import re
from typing import Callable, Pattern

# --
# # Specifier Rewriter
#
# Rewrites the module specifiers of generated ES modules so that the browser
# requests paths the dev server can answer. The scanner is a single regular
# expression: comments and string literals are matched (and skipped) so that
# `import` appearing inside them is left alone.

RUNTIME_CLIENT_PATH: str = "/_wmr.js"
RUNTIME_MODULE: str = "wmr"
NPM_PREFIX: str = "/@npm/"
CSS_MODULE_PROXY_SUFFIX: str = ".js"

TResolveId = Callable[[str, str], str | None]
TResolveImportMeta = Callable[[str], str | None]

RE_TOKENS: Pattern[str] = re.compile(
	r"""
	(?P<comment>//[^\n]*|/\*.*?\*/)
	|(?P<static>(?<![\w$.])(?:import|export)\b(?P<clause>[\w\s{},*$]*?\bfrom)?\s*(?P<q1>["'])(?P<spec1>[^"'\n]+)(?P=q1))
	|(?P<dynamic>(?<![\w$.])import\s*\(\s*(?P<q2>["'`])(?P<spec2>[^"'`\n$]+)(?P=q2)\s*\))
	|(?P<meta>(?<![\w$.])import\.meta\.(?P<prop>[A-Za-z_$][\w$]*))
	|(?P<string>"(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*'|`(?:\\.|[^`\\])*`)
	""",
	re.S | re.X,
)

RE_RELATIVE: Pattern[str] = re.compile(r"^\.?\.?/")


def isBare(spec: str) -> bool:
	"""Tells if the specifier refers to a third-party package."""
	return not RE_RELATIVE.match(spec)


def resolveSpecifier(spec: str) -> str:
	"""The default resolution policy for specifiers found in modules."""
	if spec == RUNTIME_MODULE:
		return RUNTIME_CLIENT_PATH
	# foo.css -> foo.css.js, importing a CSS Modules proxy module
	if spec.endswith(".css"):
		spec += CSS_MODULE_PROXY_SUFFIX
	if isBare(spec):
		spec = f"{NPM_PREFIX}{spec}"
	return spec


def transformImports(
	code: str,
	id: str,
	resolveId: TResolveId,
	resolveImportMeta: TResolveImportMeta | None = None,
) -> str:
	"""Rewrites every static and dynamic import specifier of `code` using
	`resolveId(spec, id)`, and every `import.meta.<prop>` for which
	`resolveImportMeta(prop)` returns a replacement. A resolver returning
	`None` leaves the original text."""
	res: list[str] = []
	offset: int = 0
	for match in RE_TOKENS.finditer(code):
		group = match.lastgroup
		if group is None or group in ("comment", "string"):
			continue
		elif group == "meta":
			value = resolveImportMeta(match.group("prop")) if resolveImportMeta else None
			if value is None:
				continue
			res.append(code[offset : match.start()])
			res.append(value)
			offset = match.end()
		else:
			name = "spec1" if group == "static" else "spec2"
			spec = match.group(name)
			resolved = resolveId(spec, id)
			if resolved is None or resolved == spec:
				continue
			res.append(code[offset : match.start(name)])
			res.append(resolved)
			offset = match.end(name)
	res.append(code[offset:])
	return "".join(res)


# EOF
