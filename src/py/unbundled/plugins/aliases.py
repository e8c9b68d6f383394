from .container import Plugin, PluginContext


class AliasesPlugin(Plugin):
	"""Maps import prefixes to paths, ie. `{"~": "/src"}` turns
	`~/app.js` into `/src/app.js`."""

	NAME = "aliases"

	def __init__(self, aliases: dict[str, str] | None = None):
		# Longest aliases first, so that `@ui/kit` wins over `@ui`.
		self.aliases: list[tuple[str, str]] = sorted(
			(aliases or {}).items(), key=lambda _: -len(_[0])
		)

	def resolveId(self, context: PluginContext, spec: str, importer: str) -> str | None:
		for alias, target in self.aliases:
			if spec == alias:
				return target
			elif spec.startswith(f"{alias}/"):
				return f"{target.rstrip('/')}{spec[len(alias):]}"
		return None


# EOF
