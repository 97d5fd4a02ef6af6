"""Injection of the TroveStorage bridge into generated documents.

Generated apps run in a sandboxed frame without usable browser storage. The
bridge script gives them ``window.TroveStorage`` whose calls are forwarded to
the embedding host with ``postMessage``:

    request:  {type: "trove-storage", requestId, action, key, value}
    response: {type: "trove-storage-response", requestId, success, result, error}

Actions are ``get``, ``set``, ``delete``, ``clear`` and ``getAll``. A call
that receives no response within STORAGE_TIMEOUT_MS rejects.
"""

HEAD_CLOSE = "</head>"

STORAGE_TIMEOUT_MS = 5000

STORAGE_BRIDGE_SCRIPT = f"""
<script>
(function() {{
  var TIMEOUT_MS = {STORAGE_TIMEOUT_MS};
  var pending = new Map();
  var nextRequestId = 0;

  window.addEventListener('message', function(event) {{
    var data = event.data;
    if (!data || data.type !== 'trove-storage-response') return;

    var entry = pending.get(data.requestId);
    if (!entry) return;

    clearTimeout(entry.timer);
    pending.delete(data.requestId);
    if (data.success) {{
      entry.resolve(data.result);
    }} else {{
      entry.reject(new Error(data.error));
    }}
  }});

  function request(action, key, value) {{
    return new Promise(function(resolve, reject) {{
      var requestId = ++nextRequestId;
      var timer = setTimeout(function() {{
        pending.delete(requestId);
        reject(new Error('TroveStorage: operation timed out'));
      }}, TIMEOUT_MS);

      pending.set(requestId, {{ resolve: resolve, reject: reject, timer: timer }});
      window.parent.postMessage(
        {{ type: 'trove-storage', requestId: requestId, action: action, key: key, value: value }},
        '*'
      );
    }});
  }}

  window.TroveStorage = {{
    get: function(key) {{ return request('get', key); }},
    set: function(key, value) {{ return request('set', key, value); }},
    delete: function(key) {{ return request('delete', key); }},
    clear: function() {{ return request('clear'); }},
    getAll: function() {{ return request('getAll'); }}
  }};
}})();
</script>
"""


def inject_storage_bridge(document: str) -> str:
    """Insert the bridge script right before the first ``</head>``.

    Documents without a closing head tag are returned unchanged.
    """
    index = document.lower().find(HEAD_CLOSE)
    if index == -1:
        return document
    return document[:index] + STORAGE_BRIDGE_SCRIPT + document[index:]
