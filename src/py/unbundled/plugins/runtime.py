import json

from .container import Plugin, PluginContext
from ..rewrite import RUNTIME_MODULE

HMR_PATH: str = "/_hmr"
HOT_CONTEXT: str = "$IMPORT_META_HOT$"

CLIENT_SCRIPT: str = """\
const hmrPath = __HMR_PATH__;
const hotContexts = new Map();
const styles = new Map();

function resolve(url) {
	return new URL(url, location.origin).pathname;
}

function updateStyle(url) {
	const link = styles.get(url);
	if (!link) return false;
	const next = link.cloneNode();
	next.href = `${url}?t=${Date.now()}`;
	next.onload = () => link.remove();
	link.after(next);
	styles.set(url, next);
	return true;
}

async function updateModule(url) {
	const ctx = hotContexts.get(url);
	if (!ctx || !ctx.acceptCallbacks.length) return false;
	for (const cb of ctx.disposeCallbacks) cb();
	const mod = await import(`${url}?t=${Date.now()}`);
	for (const cb of ctx.acceptCallbacks) cb({ module: mod });
	return true;
}

function connect() {
	const source = new EventSource(hmrPath);
	source.addEventListener('update', async event => {
		const { changes } = JSON.parse(event.data);
		let reload = false;
		for (const url of changes) {
			if (/\\.css$/.test(url) ? updateStyle(url) : await updateModule(url)) continue;
			reload = true;
		}
		if (reload) location.reload();
	});
	source.onerror = () => {
		source.close();
		setTimeout(connect, 1000);
	};
}

export function style(url) {
	url = resolve(url);
	if (styles.has(url)) return;
	const link = document.createElement('link');
	link.rel = 'stylesheet';
	link.href = url;
	document.head.appendChild(link);
	styles.set(url, link);
}

export function createHotContext(url) {
	url = resolve(url);
	let ctx = hotContexts.get(url);
	if (!ctx) {
		ctx = { acceptCallbacks: [], disposeCallbacks: [] };
		hotContexts.set(url, ctx);
	}
	return {
		accept(cb = () => {}) {
			ctx.acceptCallbacks.push(cb);
		},
		dispose(cb) {
			ctx.disposeCallbacks.push(cb);
		}
	};
}

if (__LIVE_RELOAD__) connect();
"""


def runtimeClient(hmrPath: str = HMR_PATH, liveReload: bool = True) -> str:
	"""Generates the runtime client script served at `/_wmr.js`."""
	return CLIENT_SCRIPT.replace("__HMR_PATH__", json.dumps(hmrPath)).replace(
		"__LIVE_RELOAD__", "true" if liveReload else "false"
	)


class RuntimePlugin(Plugin):
	"""Gives modules access to `import.meta.hot` and `import.meta.env`."""

	NAME = "runtime"

	def __init__(self, hot: bool = True, env: dict[str, str] | None = None):
		self.hot: bool = hot
		self.env: dict[str, str] = {"NODE_ENV": "development"} | (env or {})

	async def transform(self, context: PluginContext, code: str, id: str) -> str | None:
		if not (self.hot and "import.meta.hot" in code):
			return None
		return (
			f"import {{ createHotContext }} from '{RUNTIME_MODULE}';"
			f"const {HOT_CONTEXT} = createHotContext(import.meta.url);\n{code}"
		)

	def resolveImportMeta(self, context: PluginContext, property: str) -> str | None:
		if property == "hot":
			return HOT_CONTEXT if self.hot else "undefined"
		elif property == "env":
			return json.dumps(self.env)
		else:
			return None


# EOF
