from .cli import app

app(prog_name="mqtt-to-sqlite")
