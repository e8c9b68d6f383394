from extra import HTTPRequest, Service, on, run

from unbundled import DevServer

__doc__ = """\
An example of a development web server where the sources of `public/` are
transformed on request, along with a small API served by the same process.
Run it from a project directory: `python examples/devserver.py`.
"""


class API(Service):
	PREFIX = "/api"

	# The dev server answers any GET at priority 0
	@on(priority=10, GET="/version")
	def version(self, request: HTTPRequest):
		return request.returns({"version": "0.1.0"})


devserver = DevServer(
	cwd="public",
	root=".",
	aliases={"~": "/src"},
	onChange=lambda change: print("Changed", change.changes),
)
run(API(), devserver)
# EOF
