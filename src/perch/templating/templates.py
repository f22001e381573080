"""Built-in page templates.

Served from a ``DictLoader`` placed after the user's ``template_dir``,
so an app overrides any of them by shipping a file with the same name.
"""

BASE_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{% if name %}{{ name }}{% end %}</title>
</head>
<body>
  <header class="screen-header">
    {% if name %}<h1>{{ name }}</h1>{% end %}
    {% if description %}<p class="screen-description">{{ description }}</p>{% end %}
    <nav class="command-bar">{{ command_bar }}</nav>
  </header>
  <div id="perch-error"></div>
  <form id="post-form" method="post" action="{{ url }}"
        data-validate-message="{{ form_validate_message }}">
    <input type="hidden" name="{{ state_field }}" value="{{ key }}">
    {{ layouts }}
  </form>
</body>
</html>
"""

COMMAND_BAR_TEMPLATE = """\
{% for command in commands %}
{% if command.kind == "link" %}
<a class="btn" href="{{ command.href }}">{{ command.label }}</a>
{% else %}
<button class="btn" type="submit" form="post-form" formaction="{{ url }}/{{ command.method }}"
  {% if command.confirm %}data-confirm="{{ command.confirm }}"{% end %}>{{ command.label }}</button>
{% end %}
{% end %}
"""

BUILTIN_TEMPLATES: dict[str, str] = {
    "perch/base.html": BASE_TEMPLATE,
    "perch/command_bar.html": COMMAND_BAR_TEMPLATE,
}
