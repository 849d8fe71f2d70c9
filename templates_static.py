"""Templates and static file generation."""

import config

# Template content
BASE_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{{ title or 'Image Host' }}</title>
  <link rel="stylesheet" href="/static/app.css">
</head>
<body class="{% block body_class %}{% endblock %}">
  {% block topbar %}
  <header class="topbar">
    <nav>
      <a href="/" class="brand">Image Host</a>
      <a href="/col/add">Add</a>
      <a href="/admin">Admin</a>
      <form class="search" method="get" action="{{ search_url or '/' }}">
        <input name="q" value="{{ keywords or '' }}" placeholder="Search titles and keywords…" />
        {% if show_unclean %}<input type="hidden" name="nsfw" value="1" />{% endif %}
        <button>Search</button>
      </form>
    </nav>
  </header>
  {% endblock %}
  <main class="container">
    {% block content %}{% endblock %}
  </main>
</body>
</html>
"""

LIST_HTML = """{% extends 'base.html' %}
{% block content %}
<h1>{{ collection or 'All images' }}</h1>
<div class="filters">
  <span class="muted">{{ images|length }} results{% if keywords %} for “{{ keywords }}”{% endif %}</span>
  <a href="?q={{ keywords }}&title=1{% if show_unclean %}&nsfw=1{% endif %}">By title</a>
  <a href="?q={{ keywords }}&oldest=1{% if show_unclean %}&nsfw=1{% endif %}">Oldest</a>
  {% if show_unclean %}
  <a href="?q={{ keywords }}">Hide NSFW</a>
  {% else %}
  <a href="?q={{ keywords }}&nsfw=1">Show NSFW</a>
  {% endif %}
</div>
<div class="grid">
  {% for img in images %}
  {% if img.isClean or show_unclean %}
  <article class="card{% if not img.isClean %} unclean{% endif %}">
    <a href="/b/{{ img.base62id }}" title="{{ img.title }}">
      <img loading="lazy" src="{{ img.thumbURL }}" alt="{{ img.title }}" />
    </a>
    <div class="meta"><div class="fn">{{ img.title }}</div></div>
  </article>
  {% endif %}
  {% endfor %}
</div>
{% endblock %}
"""

NEW_HTML = """{% extends 'base.html' %}
{% block content %}
<h1>Add image</h1>
<div class="twocol">
  <section>
    <h3>From URL</h3>
    <form method="post" action="{{ add_url }}" class="settings">
      <label>URL</label>
      <input name="url" required placeholder="https://…, YouTube or imgur .gifv link" />
      <label>Title</label>
      <input name="title" required />
      <label>Keywords</label>
      <input name="keywords" placeholder="derived from title when blank" />
      <label class="inline"><input type="checkbox" name="nsfw" value="1"> NSFW</label>
      <button>Add</button>
    </form>
  </section>
  <section>
    <h3>Upload</h3>
    <form method="post" action="{{ upload_url }}" enctype="multipart/form-data" class="settings">
      <label>File</label>
      <input name="file" type="file" accept="image/jpeg,image/png,image/gif" required />
      <label>Title</label>
      <input name="title" required />
      <label>Keywords</label>
      <input name="keywords" placeholder="derived from title when blank" />
      <label class="inline"><input type="checkbox" name="nsfw" value="1"> NSFW</label>
      <button>Upload</button>
    </form>
  </section>
</div>
{% endblock %}
"""

VIEW_HTML = """{% extends 'base.html' %}
{% block body_class %}viewer bg-{{ bgcolor }}{% if fill_screen %} fill{% endif %}{% endblock %}
{% block topbar %}{% endblock %}
{% block content %}
<div class="stage">
  {% if image.kind == 'youtube' %}
  <iframe src="{{ image.imageURL }}?autoplay=1&controls={{ query.get('controls', '0') }}" allowfullscreen></iframe>
  {% elif image.kind == 'imgur-gifv' %}
  <video src="{{ image.imageURL }}" autoplay loop muted playsinline></video>
  {% else %}
  <a href="{{ image.imageURL }}"><img src="{{ image.imageURL }}" alt="{{ image.title }}" /></a>
  {% endif %}
</div>
{% if not query.get('notitle') %}<p class="caption">{{ image.title }}</p>{% endif %}
{% if is_admin %}
<form method="post" action="/admin/update/{{ image.base62id }}" class="settings edit">
  <label>Title</label>
  <input name="title" value="{{ image.title }}" />
  <label>Keywords</label>
  <input name="keywords" value="{{ image.keywords or '' }}" />
  <label>Collection</label>
  <input name="collection" value="{{ image.collectionName or '' }}" />
  <label>Submitter</label>
  <input name="submitter" value="{{ image.submitter or '' }}" />
  <label class="inline"><input type="checkbox" name="nsfw" value="1" {% if not image.isClean %}checked{% endif %}> NSFW</label>
  <button>Save</button>
  <button name="delete" value="1" class="danger" onclick="return confirm('Delete this image?')">Delete</button>
</form>
{% endif %}
{% endblock %}
"""

ADMIN_HTML = """{% extends 'base.html' %}
{% block content %}
<h1>Admin</h1>
<table class="tbl">
  <thead><tr><th></th><th>ID</th><th>Title</th><th>Collection</th><th>Kind</th><th>Keywords</th></tr></thead>
  <tbody>
  {% for img in images %}
    <tr{% if not img.isClean %} class="unclean"{% endif %}>
      <td><img class="mini" loading="lazy" src="{{ img.thumbURL }}" alt="" /></td>
      <td><a href="/admin/edit/{{ img.base62id }}">{{ img.base62id }}</a></td>
      <td>{{ img.title }}</td>
      <td>{{ img.collectionName }}</td>
      <td>{{ img.kind }}</td>
      <td class="muted">{{ img.keywords }}</td>
    </tr>
  {% endfor %}
  </tbody>
</table>
{% endblock %}
"""

APP_CSS = """:root{--bg:#0f1115;--fg:#e5e7eb;--muted:#a1a1aa;--card:#111318;--brand:#7aa2ff;--danger:#ff5c5c}
*{box-sizing:border-box}body{margin:0;background:var(--bg);color:var(--fg);font:15px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Inter,Ubuntu,Helvetica,Arial}
a{color:var(--brand);text-decoration:none}.muted{color:var(--muted)}
.topbar{position:sticky;top:0;background:#0c0e13;border-bottom:1px solid #1c1f26;z-index:10}
.topbar nav{margin:auto;display:flex;gap:14px;align-items:center;padding:10px}
.topbar .brand{font-weight:700}
.topbar .search{margin-left:auto;display:flex;gap:6px}
.container{margin:20px auto;padding:0 14px}
.grid{display:grid;grid-template-columns:repeat(auto-fill,minmax(200px,1fr));gap:14px}
.card{background:var(--card);border:1px solid #1f2430;border-radius:12px;overflow:hidden}
.card img{width:100%;aspect-ratio:1;object-fit:cover;display:block;background:#090a0d}
.card .meta{padding:8px 10px}.card.unclean{border-color:#5b1a1a}
.fn{white-space:nowrap;overflow:hidden;text-overflow:ellipsis}
.inline{display:inline}
.filters{display:flex;align-items:center;gap:12px;margin-bottom:14px}
.tbl{width:100%;border-collapse:collapse}.tbl th,.tbl td{border-bottom:1px solid #252a36;padding:8px;text-align:left}
.tbl tr.unclean td{background:#1a0f0f}.mini{width:48px;height:48px;object-fit:cover;border-radius:4px}
.twocol{display:grid;grid-template-columns:1fr 1fr;gap:20px}@media (max-width:768px){.twocol{grid-template-columns:1fr}}
button{cursor:pointer;background:#1e2635;border:1px solid #2f3748;color:var(--fg);padding:6px 12px;border-radius:8px}
button.danger{background:#3a1313;border-color:#5b1a1a;color:#ffd5d5}
input,select{background:#0e1218;border:1px solid #232a39;color:var(--fg);padding:6px 10px;border-radius:8px;width:100%}
input[type=checkbox]{width:auto}
.settings{display:grid;gap:10px;max-width:720px}
.viewer .container{margin:0;padding:0}.viewer .stage{display:flex;align-items:center;justify-content:center;min-height:92vh}
.viewer .stage img,.viewer .stage video{max-width:100vw;max-height:92vh}
.viewer.fill .stage iframe{width:100vw;height:100vh;border:0}.viewer .stage iframe{width:80vw;height:45vw;border:0}
.bg-black{background:#000}.bg-white{background:#fff;color:#111}.bg-gray{background:#444}
.caption{text-align:center;margin:8px}.edit{margin:20px auto;padding:0 14px}
"""


def ensure_assets() -> None:
    """Create templates/static on first run so the app is standalone."""
    config.TEMPLATES_DIR.mkdir(parents=True, exist_ok=True)
    config.STATIC_DIR.mkdir(parents=True, exist_ok=True)
    files = {
        config.TEMPLATES_DIR / "base.html": BASE_HTML,
        config.TEMPLATES_DIR / "list.html": LIST_HTML,
        config.TEMPLATES_DIR / "new.html": NEW_HTML,
        config.TEMPLATES_DIR / "view.html": VIEW_HTML,
        config.TEMPLATES_DIR / "admin.html": ADMIN_HTML,
        config.STATIC_DIR / "app.css": APP_CSS,
    }
    for p, content in files.items():
        if not p.exists():
            p.write_text(content, encoding="utf-8")
