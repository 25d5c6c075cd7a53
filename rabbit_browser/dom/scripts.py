"""
Page-side JavaScript.

Every script is a single function expression taking one JSON argument; the session
evaluates it as `(<script>)(<arg>)` and returns the JSON result by value. All page
state lives under `window.__rabbit` so one document never shares it with another.
"""

# Shared state bootstrap, prepended to scripts that need element ids
_STATE = """
	const state = window.__rabbit || (window.__rabbit = {
		ids: new WeakMap(),
		refs: new Map(),
		frames: new Map(),
		next: 1,
		observed: new WeakSet(),
	});
	const lookup = (id) => {
		const ref = state.refs.get(id);
		const el = ref ? ref.deref() : null;
		return el && el.isConnected ? el : null;
	};
	const frameOffset = (id) => {
		let dx = 0, dy = 0;
		let host = state.frames.get(id);
		while (host !== undefined) {
			const frame = lookup(host);
			if (!frame) break;
			const r = frame.getBoundingClientRect();
			dx += r.x; dy += r.y;
			host = state.frames.get(host);
		}
		return {dx, dy};
	};
"""

READY_STATE_JS = """
() => document.readyState
"""

PAGE_INFO_JS = """
() => ({url: window.location.href, title: document.title})
"""

# Full document read: one record per element in pre-order
COLLECT_ELEMENTS_JS = (
	"""
(arg) => {"""
	+ _STATE
	+ """
	const SKIP = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE', 'META', 'LINK', 'HEAD']);
	const clean = (s) => (s || '').replace(/\\s+/g, ' ').trim();
	const maxText = arg.maxText || 2000;
	const idFor = (el) => {
		let id = state.ids.get(el);
		if (id === undefined) {
			id = state.next++;
			state.ids.set(el, id);
		}
		state.refs.set(id, new WeakRef(el));
		return id;
	};
	const labelFor = (el, doc) => {
		if (el.id) {
			const byFor = doc.querySelector(`label[for="${CSS.escape(el.id)}"]`);
			if (byFor) return clean(byFor.textContent);
		}
		const wrapping = el.closest('label');
		if (wrapping) return clean(wrapping.textContent);
		return el.getAttribute('aria-label') || null;
	};
	const records = [];

	const visit = (el, parentId, frameId, dx, dy, doc, win) => {
		if (SKIP.has(el.tagName) || el.hasAttribute('data-rabbit-overlay')) return;
		const id = idFor(el);
		if (frameId !== null) state.frames.set(id, frameId);
		const tag = el.tagName.toLowerCase();
		const rec = {id, parentId, tag, attributes: {}, style: null, rect: null, text: '', immediateText: '',
			textChildCount: 0, subtreeElementCount: 0, error: false};
		records.push(rec);
		const start = records.length;
		try {
			for (const a of el.attributes) rec.attributes[a.name] = a.value;
			const cs = win.getComputedStyle(el);
			rec.style = {display: cs.display, visibility: cs.visibility, cursor: cs.cursor};
			const r = el.getBoundingClientRect();
			rec.rect = {x: r.x + dx, y: r.y + dy, width: r.width, height: r.height};
			rec.text = clean(el.textContent).slice(0, maxText);
			let own = '';
			for (const node of el.childNodes) {
				if (node.nodeType === Node.TEXT_NODE) {
					rec.textChildCount += 1;
					own += node.textContent;
				}
			}
			rec.immediateText = clean(own).slice(0, maxText);
			if (tag === 'a') rec.href = el.href || null;
			if (tag === 'input' || tag === 'textarea' || tag === 'select') {
				rec.value = el.value;
				rec.label = labelFor(el, doc);
				if (el.type === 'checkbox' || el.type === 'radio') rec.checked = !!el.checked;
				if (tag === 'select') rec.options = Array.from(el.options).map((o) => clean(o.text));
			}
		} catch (e) {
			rec.error = true;
		}
		for (const child of el.children) visit(child, id, frameId, dx, dy, doc, win);
		if (el.shadowRoot) {
			for (const child of el.shadowRoot.children) visit(child, id, frameId, dx, dy, doc, win);
		}
		if (tag === 'iframe') {
			try {
				const inner = el.contentDocument;
				if (inner && inner.body) {
					const r = el.getBoundingClientRect();
					for (const child of inner.body.children) {
						visit(child, id, id, dx + r.x, dy + r.y, inner, inner.defaultView);
					}
				}
			} catch (e) {
				// cross-origin frame
			}
		}
		rec.subtreeElementCount = records.length - start;
	};

	const body = document.body;
	if (body) {
		for (const child of body.children) visit(child, null, null, 0, 0, document, window);
	}
	// ids stay in the WeakMap; idFor restores the ref if the element comes back
	for (const [id, ref] of state.refs) {
		const node = ref.deref();
		if (!node || !node.isConnected) {
			state.refs.delete(id);
			state.frames.delete(id);
		}
	}
	return records;
}
"""
)

# Installs the mutation, scroll/resize and intersection observers; idempotent per document
INSTALL_OBSERVERS_JS = (
	"""
(arg) => {"""
	+ _STATE
	+ """
	if (state.observersInstalled) return false;
	const notify = (payload) => {
		try {
			window[arg.binding](JSON.stringify(payload));
		} catch (e) {
			console.debug(`${arg.prefix} binding unavailable`, e);
		}
	};
	const isOverlay = (node) => {
		if (!node || node.nodeType !== Node.ELEMENT_NODE) return false;
		return node.hasAttribute('data-rabbit-overlay') || !!node.closest('[data-rabbit-overlay]');
	};
	const relevant = (m) => {
		if (isOverlay(m.target)) return false;
		const nodes = [...m.addedNodes, ...m.removedNodes];
		return nodes.length > 0 && !nodes.every(isOverlay);
	};
	// one notification per batch window, carrying the summed count
	let mutationCount = 0;
	state.mutationObserver = new MutationObserver((mutations) => {
		const count = mutations.filter(relevant).length;
		if (count === 0) return;
		if (mutationCount === 0) {
			setTimeout(() => {
				notify({type: 'mutation', count: mutationCount});
				mutationCount = 0;
			}, arg.batchMs || 50);
		}
		mutationCount += count;
	});
	state.mutationObserver.observe(document.documentElement, {childList: true, subtree: true});

	let framePending = false;
	const viewportChanged = (reason) => {
		if (framePending) return;
		framePending = true;
		requestAnimationFrame(() => {
			framePending = false;
			notify({type: 'viewport', reason});
		});
	};
	window.addEventListener('scroll', () => viewportChanged('scroll'), {capture: true, passive: true});
	window.addEventListener('resize', () => viewportChanged('resize'), {passive: true});
	state.intersectionObserver = new IntersectionObserver(() => viewportChanged('intersection'), {
		threshold: [0, arg.threshold],
	});
	state.observersInstalled = true;
	console.log(`${arg.prefix} observers installed`);
	return true;
}
"""
)

# Current viewport-relative rects of the given element ids plus the viewport itself
READ_GEOMETRY_JS = (
	"""
(arg) => {"""
	+ _STATE
	+ """
	const rects = {};
	for (const id of arg.ids) {
		const el = lookup(id);
		if (!el) {
			rects[id] = null;
			continue;
		}
		try {
			const r = el.getBoundingClientRect();
			const off = frameOffset(id);
			rects[id] = {x: r.x + off.dx, y: r.y + off.dy, width: r.width, height: r.height};
		} catch (e) {
			rects[id] = null;
		}
	}
	return {
		viewport: {scrollX: window.scrollX, scrollY: window.scrollY, width: window.innerWidth, height: window.innerHeight},
		rects,
	};
}
"""
)

# Creates or repositions overlay boxes; boxes are absolutely positioned in document coordinates
RENDER_OVERLAYS_JS = (
	"""
(arg) => {"""
	+ _STATE
	+ """
	const COLORS = {element: '#ff0000', consent: '#ff8c00', text: '#1e90ff'};
	let root = document.querySelector('div[data-rabbit-overlay="root"]');
	if (!root) {
		root = document.createElement('div');
		root.setAttribute('data-rabbit-overlay', 'root');
		root.style.cssText = 'position:absolute;top:0;left:0;width:0;height:0;pointer-events:none;z-index:2147483647;';
		(document.body || document.documentElement).appendChild(root);
	}
	let rendered = 0;
	let failed = 0;
	for (const o of arg.overlays) {
		try {
			const color = COLORS[o.kind] || COLORS.element;
			let box = document.getElementById(o.domId);
			if (!box) {
				box = document.createElement('div');
				box.id = o.domId;
				box.setAttribute('data-rabbit-overlay', 'box');
				box.style.cssText = `position:absolute;box-sizing:border-box;border:2px solid ${color};pointer-events:none;transition:opacity 0.1s;`;
				const label = document.createElement('div');
				label.setAttribute('data-rabbit-overlay', 'label');
				label.textContent = o.label;
				label.style.cssText = `position:absolute;top:-18px;left:-2px;background:${color};color:#fff;font:bold 12px/16px sans-serif;padding:0 4px;border-radius:2px;pointer-events:none;`;
				box.appendChild(label);
				root.appendChild(box);
			}
			box.style.left = `${o.x}px`;
			box.style.top = `${o.y}px`;
			box.style.width = `${o.width}px`;
			box.style.height = `${o.height}px`;
			box.style.opacity = String(o.opacity);
			const el = lookup(o.id);
			if (el && state.intersectionObserver && !state.observed.has(el)) {
				state.intersectionObserver.observe(el);
				state.observed.add(el);
			}
			rendered += 1;
		} catch (e) {
			failed += 1;
		}
	}
	return {rendered, failed};
}
"""
)

REMOVE_OVERLAYS_JS = """
() => {
	const nodes = document.querySelectorAll('div[data-rabbit-overlay="root"]');
	nodes.forEach((n) => n.remove());
	return nodes.length;
}
"""

# Compact text summary of the page
PAGE_CONTEXT_JS = """
() => {
	const clean = (s) => (s || '').replace(/\\s+/g, ' ').trim();
	const texts = (selector) => Array.from(document.querySelectorAll(selector)).map((el) => clean(el.textContent));
	const truncate = (s, n) => (s.length > n ? s.substring(0, n) + '...' : s);

	const headings = {
		h1: texts('h1').filter((t) => t.length > 5).slice(0, 3),
		h2: texts('h2').filter((t) => t.length > 5).slice(0, 5),
		h3: texts('h3').filter((t) => t.length > 5).slice(0, 5),
	};
	let paragraphs = texts('main p, article p, section p').filter((t) => t.length > 30);
	if (paragraphs.length < 2) paragraphs = texts('p').filter((t) => t.length > 30);
	paragraphs = paragraphs.slice(0, 5).map((p) => truncate(p, 200));
	const navigation = texts('nav a, header a').filter((t) => t.length > 0).slice(0, 8);
	const footer = texts('footer').filter((t) => t.length > 0).slice(0, 1).map((t) => truncate(t, 150));
	const meta = document.querySelector('meta[name="description"]');

	const context = {title: document.title, url: window.location.href};
	if (meta && meta.getAttribute('content')) context.metaDescription = meta.getAttribute('content');
	if (headings.h1.length > 0 || headings.h2.length > 0) context.headings = headings;
	if (paragraphs.length > 0) context.mainContent = paragraphs;
	if (navigation.length > 0) context.navigation = navigation;
	if (footer.length > 0) context.footer = footer[0];
	return context;
}
"""

# --- actions, all addressed by mirror id ---

CLICK_ELEMENT_JS = (
	"""
(arg) => {"""
	+ _STATE
	+ """
	const el = lookup(arg.id);
	if (!el) return {ok: false, reason: 'detached'};
	el.scrollIntoView({block: 'center', inline: 'center'});
	el.click();
	return {ok: true, tag: el.tagName.toLowerCase()};
}
"""
)

FILL_INPUT_JS = (
	"""
(arg) => {"""
	+ _STATE
	+ """
	const el = lookup(arg.id);
	if (!el) return {ok: false, reason: 'detached'};
	el.scrollIntoView({block: 'center', inline: 'center'});
	el.focus();
	if (el.isContentEditable) {
		el.textContent = arg.text;
	} else if ('value' in el) {
		const proto = Object.getPrototypeOf(el);
		const setter = Object.getOwnPropertyDescriptor(proto, 'value');
		if (setter && setter.set) setter.set.call(el, arg.text);
		else el.value = arg.text;
	} else {
		return {ok: false, reason: 'not fillable'};
	}
	el.dispatchEvent(new Event('input', {bubbles: true}));
	el.dispatchEvent(new Event('change', {bubbles: true}));
	return {ok: true, tag: el.tagName.toLowerCase()};
}
"""
)

SELECT_OPTION_JS = (
	"""
(arg) => {"""
	+ _STATE
	+ """
	const el = lookup(arg.id);
	if (!el) return {ok: false, reason: 'detached'};
	if (el.tagName !== 'SELECT') return {ok: false, reason: 'not a select element'};
	const wanted = String(arg.value).trim();
	const option = Array.from(el.options).find((o) => o.value === wanted || o.text.trim() === wanted);
	if (!option) {
		return {ok: false, reason: 'option not found', options: Array.from(el.options).map((o) => o.text.trim())};
	}
	el.value = option.value;
	el.dispatchEvent(new Event('input', {bubbles: true}));
	el.dispatchEvent(new Event('change', {bubbles: true}));
	return {ok: true, tag: 'select', value: option.value, text: option.text.trim()};
}
"""
)

SUBMIT_FORM_JS = (
	"""
(arg) => {"""
	+ _STATE
	+ """
	const el = lookup(arg.id);
	if (!el) return {ok: false, reason: 'detached'};
	const form = el.tagName === 'FORM' ? el : el.form || el.closest('form');
	if (!form) return {ok: false, reason: 'no enclosing form'};
	if (typeof form.requestSubmit === 'function') form.requestSubmit();
	else form.submit();
	return {ok: true, tag: 'form'};
}
"""
)
