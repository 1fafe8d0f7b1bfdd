from fidelis.cli import app

app()
