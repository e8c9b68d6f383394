from .container import (
	Plugin,
	PluginContext,
	PluginContainer,
	LoadResult,
	createContainer,
)  # NOQA: F401
from .aliases import AliasesPlugin  # NOQA: F401
from .runtime import RuntimePlugin, runtimeClient  # NOQA: F401
from .styles import StylesPlugin, modularizeCss  # NOQA: F401
from .transpiler import TranspilerPlugin  # NOQA: F401

# EOF
