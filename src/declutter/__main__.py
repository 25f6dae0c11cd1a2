from declutter.cli import app

app()
