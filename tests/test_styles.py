import asyncio
from pathlib import Path

import pytest

from unbundled.plugins.container import PluginContext
from unbundled.plugins.styles import (
	StylesPlugin,
	camelCase,
	modularizeCss,
	proxyModule,
	scopeHash,
)

STYLESHEET = """\
/* .comment { color: red } */
.title, .title:hover > .sub-title { color: red }
:global(.app) .title { content: ".not-a-class"; background: url("a.png") }
@media (max-width: 10px) {
	.title { color: blue }
}
"""


def test_scope_hash():
	assert scopeHash("style.module.css") == scopeHash("style.module.css")
	assert scopeHash("a.module.css") != scopeHash("b.module.css")
	assert len(scopeHash("a.module.css")) == 5


def test_modularize_css():
	h = scopeHash("style.module.css")
	res = modularizeCss(STYLESHEET, "style.module.css")
	assert res.mappings == {"title": f"title_{h}", "sub-title": f"sub-title_{h}"}
	assert f".title_{h}, .title_{h}:hover > .sub-title_{h} {{" in res.css
	assert f".app .title_{h} {{" in res.css
	assert '".not-a-class"' in res.css
	assert 'url("a.png")' in res.css
	assert "@media (max-width: 10px) {" in res.css
	assert f"\t.title_{h} {{ color: blue }}" in res.css
	assert "comment" not in res.css


def test_modularize_css_depends_on_id():
	a = modularizeCss(".title{}", "a.module.css")
	b = modularizeCss(".title{}", "b.module.css")
	assert a.mappings["title"] != b.mappings["title"]


def test_camel_case():
	assert camelCase("title") == "title"
	assert camelCase("sub-title") == "subTitle"
	assert camelCase("a--b-c") == "aBC"


def test_proxy_module():
	code = proxyModule(
		{"sub-title": "sub-title_x", "default": "default_x", "1col": "1col_x"},
		'"/style.module.css"',
	)
	lines = code.splitlines()
	assert lines[0] == "import { style } from 'wmr';"
	assert lines[1] == 'style("/style.module.css");'
	assert lines[2] == (
		'export default {"sub-title": "sub-title_x", "default": "default_x",'
		' "1col": "1col_x"};'
	)
	assert 'export const subTitle = "sub-title_x";' in lines
	# Reserved words and invalid identifiers are only in the default export
	assert len(lines) == 4


def test_plugin_ignores_other_files(tmp_path: Path):
	context = PluginContext(tmp_path)
	plugin = StylesPlugin(tmp_path)
	assert asyncio.run(plugin.load(context, str(tmp_path / "app.js"))) is None


def test_plugin_loads_plain_stylesheet(project):
	cwd = project({"css/base.css": "body { margin: 0 }"})
	context = PluginContext(cwd)
	res = asyncio.run(StylesPlugin(cwd).load(context, str(cwd / "css" / "base.css")))
	assert res is not None
	assert 'style("/css/base.css");' in res.code
	assert "export default {};" in res.code
	assert not context.assets


def test_plugin_missing_plain_stylesheet(tmp_path: Path):
	context = PluginContext(tmp_path)
	with pytest.raises(FileNotFoundError):
		asyncio.run(StylesPlugin(tmp_path).load(context, str(tmp_path / "missing.css")))


def test_plugin_emits_scoped_stylesheet(project):
	cwd = project({"style.module.css": ".title { color: red }"})
	written: dict[str, str | bytes] = {}
	context = PluginContext(cwd, lambda name, source: written.update({name: source}))
	res = asyncio.run(StylesPlugin(cwd).load(context, str(cwd / "style.module.css")))
	h = scopeHash("style.module.css")
	assert res is not None
	assert "style(import.meta.ASSET_URL_1);" in res.code
	assert f'export const title = "title_{h}";' in res.code
	assert written == {"style.module.css": f".title_{h} {{ color: red }}"}
	assert context.assetURL("1") == "/style.module.css"


# EOF
