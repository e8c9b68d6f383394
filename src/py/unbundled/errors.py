# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class Skip(Exception):
	"""Raised by a plugin or pipeline to decline a request. This is not an
	error: the request is passed on to the next handler, silently."""


class TransformError(Exception):
	"""A transpiler, compiler or loader failed to produce a module."""

	def __init__(self, message: str, id: str | None = None):
		super().__init__(message)
		self.message: str = message
		self.id: str | None = id

	def __str__(self) -> str:
		return f"{self.id}: {self.message}" if self.id else self.message


# EOF
