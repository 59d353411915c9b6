"""JavaScript evaluated inside the player page.

Each script is a function expression taking at most one JSON-serialisable
argument, so no selector or state text is ever spliced into source.
"""

# Arg: {candidates: [selector, ...]}. Returns {activated, selector, index}.
RESOLVER_SCRIPT = """
(payload) => {
  const candidates = Array.isArray(payload && payload.candidates) ? payload.candidates : [];

  function findInRoot(root, sel) {
    try {
      const direct = root.querySelector(sel);
      if (direct) return direct;
    } catch (_e) {}
    let nodes = [];
    try {
      nodes = root.querySelectorAll('*');
    } catch (_e) {
      return null;
    }
    for (let i = 0; i < nodes.length; i++) {
      const host = nodes[i];
      if (host && host.shadowRoot) {
        try {
          const found = findInRoot(host.shadowRoot, sel);
          if (found) return found;
        } catch (_e) {}
      }
    }
    return null;
  }

  function locate(sel) {
    try {
      return document.querySelector(sel) || findInRoot(document, sel);
    } catch (_e) {
      return findInRoot(document, sel);
    }
  }

  function fire(el, type, ctor, x, y) {
    el.dispatchEvent(new ctor(type, {
      view: window,
      bubbles: true,
      cancelable: true,
      composed: true,
      clientX: x,
      clientY: y,
      button: 0,
    }));
  }

  function activate(el) {
    try {
      if (typeof el.focus === 'function') el.focus();
      const rect = el.getBoundingClientRect();
      const x = rect.left + rect.width / 2;
      const y = rect.top + rect.height / 2;
      const hasPointer = typeof window.PointerEvent === 'function';
      if (hasPointer) fire(el, 'pointerdown', window.PointerEvent, x, y);
      fire(el, 'mousedown', MouseEvent, x, y);
      if (hasPointer) fire(el, 'pointerup', window.PointerEvent, x, y);
      fire(el, 'mouseup', MouseEvent, x, y);
      fire(el, 'click', MouseEvent, x, y);
      return true;
    } catch (_e) {
      try {
        el.click();
        return true;
      } catch (_e2) {
        return false;
      }
    }
  }

  for (let i = 0; i < candidates.length; i++) {
    const sel = String(candidates[i] || '').trim();
    if (!sel) continue;
    try {
      const el = locate(sel);
      if (el && activate(el)) return { activated: true, selector: sel, index: i };
    } catch (_e) {}
  }
  return { activated: false, selector: '', index: -1 };
}
"""

# Returns a compact JSON string {id, time, paused}; never throws.
CAPTURE_SCRIPT = """
() => {
  try {
    const id = location.hash || location.pathname || document.title || 'unknown';
    const media = document.querySelector('audio');
    let time = 0;
    let paused = true;
    if (media) {
      time = media.currentTime || 0;
      paused = media.paused;
    } else {
      const player = window.player;
      if (player && typeof player.getCurrentTime === 'function') {
        try { time = player.getCurrentTime(); } catch (_e) {}
      }
      if (player && typeof player.isPlaying === 'function') {
        try { paused = !player.isPlaying(); } catch (_e) {}
      }
    }
    return JSON.stringify({ id: String(id), time: Number(time), paused: Boolean(paused) });
  } catch (_e) {
    return JSON.stringify({ id: 'unknown', time: 0, paused: true });
  }
}
"""

# Arg: {state: {id, time, paused}}. One attempt; the host owns the retry cadence.
# Returns 'applied' | 'not_ready' | 'player' | 'absent', the RESTORE_* values in constants.
RESTORE_ATTEMPT_SCRIPT = """
(payload) => {
  const state = (payload && payload.state) || {};
  const time = Number(state.time) || 0;
  const paused = state.paused !== false;
  const media = document.querySelector('audio');
  if (media) {
    try {
      if (!(media.readyState > 0)) return 'not_ready';
      const duration = Number(media.duration);
      const limit = Number.isFinite(duration) && duration > 0 ? duration : time;
      media.currentTime = Math.min(time, limit);
      if (!paused) {
        try {
          const started = media.play();
          if (started && typeof started.catch === 'function') started.catch(() => {});
        } catch (_e) {}
      }
      return 'applied';
    } catch (_e) {
      return 'not_ready';
    }
  }
  const player = window.player;
  if (player && typeof player.seek === 'function') {
    try {
      player.seek(time);
      if (!paused && typeof player.play === 'function') player.play();
    } catch (_e) {}
    return 'player';
  }
  return 'absent';
}
"""
