from extra.model import Application, mount

from .errors import Skip, TransformError  # NOQA: F401
from .config import DevServerOptions  # NOQA: F401
from .cache import CacheStore  # NOQA: F401
from .devserver import DevServer  # NOQA: F401


def serve(**options) -> Application:
	"""Creates the dev server application, which transforms the modules
	of `cwd` and serves its other files as they are."""
	return mount(DevServer(**options))


# EOF
