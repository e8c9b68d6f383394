import asyncio
import inspect
import os
import traceback
from pathlib import Path

import pytest
from extra import HTTPRequest, HTTPResponse
from extra.http.model import (
	HTTPBodyAsyncStream,
	HTTPBodyBlob,
	HTTPBodyFile,
	HTTPHeaders,
	headername,
)
from extra.model import Application

import unbundled.plugins.styles as styles
from unbundled import DevServer, Skip, TransformError, serve
from unbundled.plugins import Plugin, RuntimePlugin
from unbundled.plugins.styles import scopeHash
from unbundled.watcher import ChangeEvent

MAIN = """\
import pad from "left-pad";
import { util } from './util.js';
import styles from './style.module.css';
export default pad(util, styles.title);
"""


def devserver(cwd: Path, *plugins: Plugin, **options) -> tuple[Application, DevServer]:
	app = serve(cwd=cwd, out="out", watch=False, plugins=list(plugins), **options)
	server = app.services[0]
	assert isinstance(server, DevServer)
	return app, server


def request(path: str, **headers: str) -> HTTPRequest:
	return HTTPRequest(
		"GET", path, None, HTTPHeaders({headername(k): v for k, v in headers.items()})
	)


async def get(app: Application, path: str, **headers: str) -> HTTPResponse:
	res = app.process(request(path, **headers))
	return await res if inspect.isawaitable(res) else res


def text(res: HTTPResponse) -> str:
	assert isinstance(res.body, HTTPBodyBlob), f"Response has no content: {res}"
	return res.body.payload.decode("utf8")


def test_module_is_transformed_once(project, counter):
	cwd = project({"main.js": MAIN})
	app, server = devserver(cwd, counter)

	async def scenario():
		first = await get(app, "/main.js")
		second = await get(app, "/main.js")
		await server.cache.flush()
		return first, second

	first, second = asyncio.run(scenario())
	assert first.status == 200
	assert first.getHeader("Content-Type") == "application/javascript"
	assert first.getHeader("Server-Timing").startswith("js;dur=")
	code = text(first)
	assert code == text(second)
	assert counter.count == 1
	assert 'import pad from "/@npm/left-pad";' in code
	assert "import { util } from './util.js';" in code
	assert "import styles from './style.module.css.js';" in code
	# Mirrored to the output directory
	assert (cwd / "out" / "main.js").read_text() == code


def test_module_change_invalidates(project, counter):
	cwd = project({"main.js": "export default 1;"})
	changes: list[ChangeEvent] = []
	app, server = devserver(cwd, counter, onChange=changes.append)

	async def scenario():
		assert text(await get(app, "/main.js")) == "export default 1;"
		(cwd / "main.js").write_text("export default 2;")
		# Not invalidated yet
		assert text(await get(app, "/main.js")) == "export default 1;"
		server.watcher.changed(cwd / "main.js")
		assert text(await get(app, "/main.js")) == "export default 2;"
		server.watcher.flush()
		await server.stop()

	asyncio.run(scenario())
	assert counter.count == 2
	assert counter.changes == [str(cwd / "main.js")]
	assert [_.changes for _ in changes] == [["/main.js"]]


def test_concurrent_requests_share_transform(project, slowCounter):
	cwd = project({"main.js": MAIN})
	app, server = devserver(cwd, slowCounter)

	async def scenario():
		res = await asyncio.gather(*(get(app, "/main.js") for _ in range(5)))
		await server.cache.flush()
		return res

	responses = asyncio.run(scenario())
	assert slowCounter.count == 1
	assert len({text(_) for _ in responses}) == 1


def test_typescript_prefers_tsx(project, counter):
	cwd = project({"util.ts": "export const a = 1;", "util.tsx": "export const a = 2;"})
	app, _ = devserver(cwd, counter)
	res = asyncio.run(get(app, "/util", Referer="http://localhost:8080/main.ts"))
	assert res.status == 200
	assert text(res) == "export const a = 2;"


def test_typescript_extensionless_import(project, counter):
	cwd = project({"main.ts": "import { a } from './util';", "util.ts": "export const a = 1;"})
	app, _ = devserver(cwd, counter)
	res = asyncio.run(get(app, "/util", Referer="http://localhost:8080/main.ts"))
	assert res.status == 200
	assert res.getHeader("Content-Type") == "application/javascript"
	assert text(res) == "export const a = 1;"


@pytest.mark.skipif(os.name != "posix", reason="Uses a shell script")
def test_typescript_through_transpiler(project, monkeypatch):
	esbuild = project({"bin/esbuild": "#!/bin/sh\nsed 's/: number//'\n"}) / "bin" / "esbuild"
	esbuild.chmod(0o755)
	monkeypatch.setenv("ESBUILD", str(esbuild))
	cwd = project({"app.ts": "import x from 'x';\nexport const a: number = x;\n"})
	app = serve(cwd=cwd, out="out", watch=False)
	res = asyncio.run(get(app, "/app.ts"))
	assert res.status == 200
	assert text(res) == "import x from '/@npm/x';\nexport const a = x;\n"


def test_runtime_client_is_not_cached(project):
	cwd = project({})
	app, server = devserver(cwd)

	async def scenario():
		return await get(app, "/_wmr.js"), await get(app, "/_wmr.js")

	first, second = asyncio.run(scenario())
	assert first.getHeader("Content-Type") == "application/javascript"
	assert first.getHeader("Server-Timing").startswith("runtimeClient;dur=")
	assert text(first) == text(second)
	assert "export function createHotContext(url)" in text(first)
	assert 'const hmrPath = "/_hmr";' in text(first)
	assert len(server.cache) == 0


def test_hot_modules(project):
	cwd = project({"app.js": "if (import.meta.hot) import.meta.hot.accept();\n"})
	app, _ = devserver(cwd, RuntimePlugin())
	code = text(asyncio.run(get(app, "/app.js")))
	assert code.startswith("import { createHotContext } from '/_wmr.js';")
	assert "createHotContext(import.meta.url);" in code
	assert code.endswith("if ($IMPORT_META_HOT$) $IMPORT_META_HOT$.accept();\n")


def test_aliases_are_resolved(project):
	cwd = project({"main.js": "import a from '~/a.js';\nimport b from 'b';\n"})
	app = serve(cwd=cwd, out="out", watch=False, aliases={"~": "/src"})
	code = text(asyncio.run(get(app, "/main.js")))
	assert code == "import a from '/src/a.js';\nimport b from '/@npm/b';\n"


def test_plain_stylesheet_is_served_as_is(project):
	cwd = project({"style.css": "body { color: red }"})
	app, server = devserver(cwd)
	res = asyncio.run(get(app, "/style.css"))
	assert res.status == 200
	assert res.getHeader("Content-Type") == "text/css"
	assert res.getHeader("Server-Timing") is None
	assert isinstance(res.body, HTTPBodyFile)
	assert res.body.path.read_text() == "body { color: red }"
	assert len(server.cache) == 0


def test_scoped_stylesheet(project):
	cwd = project({"style.module.css": ".title { color: red }"})
	app, server = devserver(cwd)
	res = asyncio.run(get(app, "/style.module.css"))
	assert res.getHeader("Content-Type") == "text/css"
	assert text(res) == f".title_{scopeHash('style.module.css')} {{ color: red }}"
	assert "style.module.css" in server.cache


def test_stylesheet_proxy_module(project):
	cwd = project({"style.module.css": ".title { color: red }"})
	app, server = devserver(cwd)

	async def scenario():
		res = await get(app, "/style.module.css.js")
		await server.cache.flush()
		return res

	res = asyncio.run(scenario())
	h = scopeHash("style.module.css")
	code = text(res)
	assert res.getHeader("Content-Type") == "application/javascript"
	assert res.getHeader("Server-Timing").startswith("cssModule;dur=")
	assert "import { style } from '/_wmr.js';" in code
	assert 'style("/style.module.css");' in code
	assert f'export const title = "title_{h}";' in code
	# The emitted stylesheet is cached alongside its proxy
	assert server.cache.get("style.module.css") == f".title_{h} {{ color: red }}"
	assert "style.module.css.js" in server.cache
	assert (cwd / "out" / "style.module.css.js").read_text() == code


def test_stylesheet_changed_while_generating_its_proxy(project, monkeypatch):
	cwd = project({"style.module.css": ".title { color: red }"})
	app, server = devserver(cwd)
	readText = styles.readText

	async def readAndChange(path, *args):
		text = await readText(path, *args)
		(cwd / "style.module.css").write_text(".title { color: blue }")
		server.watcher.changed(cwd / "style.module.css")
		return text

	monkeypatch.setattr(styles, "readText", readAndChange)

	async def scenario():
		res = await get(app, "/style.module.css.js")
		server.watcher.flush()
		await server.cache.flush()
		return res

	res = asyncio.run(scenario())
	assert res.status == 200
	# Neither the stale stylesheet nor its proxy are kept
	assert server.cache.get("style.module.css") is None
	assert server.cache.get("style.module.css.js") is None
	assert not (cwd / "out" / "style.module.css").exists()


def test_plain_stylesheet_proxy_module(project):
	cwd = project({"css/base.css": "body { margin: 0 }"})
	app, _ = devserver(cwd)
	code = text(asyncio.run(get(app, "/css/base.css.js")))
	assert 'style("/css/base.css");' in code
	assert "export default {};" in code


def test_missing_stylesheet_proxy_module(project):
	cwd = project({})
	errors: list[BaseException] = []
	app, _ = devserver(cwd, onError=errors.append)
	assert asyncio.run(get(app, "/missing.css.js")).status == 500
	assert len(errors) == 1


def test_npm_requests_are_deferred(project):
	cwd = project({})
	app, server = devserver(cwd)
	assert asyncio.run(server.transform(request("/@npm/left-pad"))) is None
	assert asyncio.run(get(app, "/@npm/left-pad")).status == 404


def test_other_files_are_deferred(project):
	cwd = project({"index.html": "<html>"})
	app, _ = devserver(cwd)
	res = asyncio.run(get(app, "/"))
	assert res.status == 200
	assert res.getHeader("Content-Type") == "text/html"
	assert asyncio.run(get(app, "/logo.png")).status == 404


class Failing(Plugin):
	NAME = "failing"

	def __init__(self, error: Exception):
		self.error: Exception | None = error

	async def transform(self, context, code, id):
		if self.error:
			raise self.error
		return None


def test_transform_error(project):
	cwd = project({"main.js": "export default 1;"})
	errors: list[BaseException] = []
	plugin = Failing(ValueError("Unexpected token"))
	app, server = devserver(cwd, plugin, onError=errors.append)
	res = asyncio.run(get(app, "/main.js"))
	assert res.status == 500
	assert "Unexpected token" in text(res)
	assert len(errors) == 1
	assert isinstance(errors[0], TransformError)
	assert errors[0].id == "main.js"
	assert "main.js" not in server.cache
	# Errors are not cached
	plugin.error = None
	res = asyncio.run(get(app, "/main.js"))
	assert res.status == 200
	assert text(res) == "export default 1;"


def test_transform_error_keeps_its_traceback(project):
	cwd = project({"main.js": "export default 1;"})
	_, server = devserver(cwd, Failing(ValueError("Unexpected token")))
	with pytest.raises(TransformError) as error:
		asyncio.run(server.transform(request("/main.js")))
	frames = [
		_
		for _ in traceback.extract_tb(error.value.__traceback__)
		if _.name == "transform" and Path(_.filename).name == "devserver.py"
	]
	# Re-raised as is, from where the pipeline was run
	assert len(frames) == 1
	assert "self.pipelines.run" in (frames[0].line or "")


def test_skip_serves_raw_file(project):
	cwd = project({"main.js": "export default 1;"})
	errors: list[BaseException] = []
	app, _ = devserver(cwd, Failing(Skip()), onError=errors.append)
	res = asyncio.run(get(app, "/main.js"))
	assert res.status == 200
	assert isinstance(res.body, HTTPBodyFile)
	assert res.body.path.name == "main.js"
	assert not errors


def test_missing_module(project):
	cwd = project({})
	app, _ = devserver(cwd)
	assert asyncio.run(get(app, "/missing.js")).status == 500


def test_events_stream(project):
	cwd = project({})
	app, server = devserver(cwd)

	async def scenario():
		res = await get(app, "/_hmr")
		assert res.getHeader("Content-Type") == "text/event-stream"
		assert res.shouldClose
		assert isinstance(res.body, HTTPBodyAsyncStream)
		stream = res.body.stream
		assert await anext(stream) == "retry: 1000\n\n"
		server.onChange(ChangeEvent(["/main.js"], 3))
		assert (await anext(stream)).startswith("event: update\n")
		await server.stop()
		assert not server.liveReload.subscribers

	asyncio.run(scenario())


# EOF
