import re
from html import escape
from urllib.parse import quote
from .models import ViewState
from .settings import DEFAULT_BIRTH_MONTH

_SETUP_HTML = """<!DOCTYPE html><html><head><meta charset="UTF-8"><meta name="viewport" content="width=600">
<title>ByteKindle</title>
<style>
  body { background: #fff; margin: 0; padding: 20px; font-family: sans-serif; text-align: center; }
  .box { border: 4px solid #000; padding: 25px; margin-top: 20px; border-radius: 20px; }
  label { display: block; font-weight: bold; margin-top: 15px; }
  input { font-size: 22px; width: 90%; padding: 15px; margin: 12px 0; border: 3px solid #000; border-radius: 10px; }
  button { font-size: 26px; width: 95%; padding: 22px; background: #000; color: #fff; border: none; font-weight: bold; border-radius: 10px; }
</style></head>
<body>
  <h2>ByteKindle</h2>
  <div class="box">
    <form method="GET" action="/start">
      <label>Birth Month</label>
      <input type="month" name="dob" value="{dob}">
      <label>Hero Name</label>
      <input type="text" name="hero" placeholder="Brave Bee" autofocus>
      <button type="submit">START</button>
    </form>
  </div>
</body></html>"""

# Kindle's browser only runs ES5, so the viewer script sticks to XMLHttpRequest.
_VIEWER_HTML = """<!DOCTYPE html><html><head><meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0, maximum-scale=1.0, user-scalable=no">
<title>{title}</title>
<style>
  html, body { margin: 0; padding: 0; background: #fff; width: 100%; overflow-x: hidden; font-family: sans-serif; }
  .nav { width: 100%; border-bottom: 3px solid #000; border-collapse: collapse; table-layout: fixed; }
  .btn { display: block; text-decoration: none; color: #000; font-weight: bold; font-size: 28px; padding: 20px 0; text-align: center; }
  .btn-next { background: #000 !important; color: #fff !important; }
  .caption { font-size: 22px; padding: 12px 16px; margin: 0; }
  .count { font-size: 18px; padding: 0 16px 12px; margin: 0; }
  img { width: 100% !important; height: auto !important; display: block; border: 0; }
</style></head>
<body>
  <table class="nav">
    <tr>
      <td style="width: 40%; border-right: 3px solid #000;"><a href="/" class="btn">HOME</a></td>
      <td style="width: 60%;"><a id="next" href="{next_url}" class="btn btn-next">NEXT</a></td>
    </tr>
  </table>
  <img id="scene" src="{image_url}" alt="">
  <p id="desc" class="caption">{description}</p>
  <p id="count" class="count">{position} / {total}</p>
  <script>
    (function () {
      var hero = "{hero_param}";
      var total = {total};
      document.getElementById("next").onclick = function () {
        var xhr = new XMLHttpRequest();
        xhr.open("GET", "/api/next?hero=" + hero + "&t=" + new Date().getTime(), true);
        xhr.onreadystatechange = function () {
          if (xhr.readyState !== 4) { return; }
          if (xhr.status !== 200) { window.location.href = "/"; return; }
          var data = JSON.parse(xhr.responseText);
          document.getElementById("scene").src = "/api/image.png?hero=" + hero + "&index=" + data.index;
          document.getElementById("desc").innerHTML = "";
          document.getElementById("desc").appendChild(document.createTextNode(data.desc));
          document.getElementById("count").innerHTML = (data.index + 1) + " / " + total;
        };
        xhr.send(null);
        return false;
      };
    })();
  </script>
</body></html>"""

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

def _fill(template: str, values: dict) -> str:
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), template)

def render_setup(default_dob: str = DEFAULT_BIRTH_MONTH) -> str:
    return _fill(_SETUP_HTML, {"dob": escape(default_dob, quote=True)})

def render_viewer(view: ViewState) -> str:
    hero_param = quote(view.subject, safe="")
    return _fill(_VIEWER_HTML, {
        "title": escape(view.subject or "ByteKindle"),
        "next_url": f"/next?hero={hero_param}",
        "image_url": f"/api/image.png?hero={hero_param}&amp;index={view.index}",
        "description": escape(view.description),
        "position": str(view.index + 1),
        "total": str(view.total),
        "hero_param": hero_param,
    })
